"""
Geração do payload PIX "copia e cola" (BR Code, padrão EMV MPM).

Cada campo é serializado como ID (2 dígitos) + tamanho (2 dígitos) + valor.
Os templates aninhados (26 e 62) são montados como campos comuns e o
registro termina com o campo 63, cujo valor é o CRC16-CCITT (polinômio
0x1021, valor inicial 0xFFFF) calculado sobre todos os bytes anteriores,
incluindo o próprio prefixo "6304".
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


PAYLOAD_FORMAT_INDICATOR = "00"
MERCHANT_ACCOUNT_INFO = "26"
MERCHANT_CATEGORY_CODE = "52"
TRANSACTION_CURRENCY = "53"
TRANSACTION_AMOUNT = "54"
COUNTRY_CODE = "58"
MERCHANT_NAME = "59"
MERCHANT_CITY = "60"
ADDITIONAL_DATA = "62"
CRC16 = "63"

GUI_FIELD = "00"
KEY_FIELD = "01"
DESCRIPTION_FIELD = "02"
TXID_FIELD = "05"

PIX_GUI = "br.gov.bcb.pix"
CURRENCY_BRL = "986"
MAX_FIELD_LENGTH = 99
MAX_NAME_LENGTH = 25
MAX_CITY_LENGTH = 15
MAX_TXID_LENGTH = 25
CRC_PREFIX = CRC16 + "04"

_TXID_ALLOWED = re.compile(r"[^A-Za-z0-9]")


class PixPayloadError(ValueError):
    pass


@dataclass(frozen=True)
class PixField:
    id: str
    value: str
    children: tuple[PixField, ...] = ()


def crc16_ccitt(data: str | bytes) -> str:
    """CRC16-CCITT (0x1021, init 0xFFFF) em 4 dígitos hexadecimais maiúsculos."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    crc = 0xFFFF
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return f"{crc:04X}"


def _ascii(value: str) -> str:
    """Remove acentos e qualquer caractere fora do ASCII imprimível."""
    normalized = unicodedata.normalize("NFKD", value or "")
    stripped = normalized.encode("ascii", "ignore").decode("ascii")
    return "".join(ch for ch in stripped if 32 <= ord(ch) < 127).strip()


def _field(field_id: str, value: str) -> str:
    if len(value) > MAX_FIELD_LENGTH:
        raise PixPayloadError(f"Campo {field_id} excede {MAX_FIELD_LENGTH} caracteres.")
    return f"{field_id}{len(value):02d}{value}"


def format_amount(amount: Decimal | str | float) -> str:
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if value <= 0:
        raise PixPayloadError("O valor do PIX precisa ser positivo.")
    return f"{value:.2f}"


def sanitize_txid(reference: str) -> str:
    txid = _TXID_ALLOWED.sub("", reference or "")[:MAX_TXID_LENGTH]
    return txid or "***"


def _merchant_account(pix_key: str, description: str) -> str:
    key = (pix_key or "").strip()
    if not key:
        raise PixPayloadError("Chave PIX não informada.")
    gui = _field(GUI_FIELD, PIX_GUI)
    key_field = _field(KEY_FIELD, key)
    content = gui + key_field
    if len(content) > MAX_FIELD_LENGTH:
        raise PixPayloadError("Chave PIX longa demais para o BR Code.")

    # A descrição é truncada para caber no template 26 sem quebrar o enquadramento
    room = MAX_FIELD_LENGTH - len(content) - 4
    text = _ascii(description)[: max(room, 0)].strip()
    if text:
        content += _field(DESCRIPTION_FIELD, text)
    return content


def build_payload(
    pix_key: str,
    receiver_name: str,
    amount: Decimal | str | float,
    description: str = "",
    txid: str = "",
    city: str = "SAO PAULO",
) -> str:
    """Monta o BR Code completo, já com o CRC16 no final."""
    name = _ascii(receiver_name)[:MAX_NAME_LENGTH].strip() or "RECEBEDOR"
    merchant_city = _ascii(city)[:MAX_CITY_LENGTH].strip() or "BRASIL"

    payload = "".join(
        [
            _field(PAYLOAD_FORMAT_INDICATOR, "01"),
            _field(MERCHANT_ACCOUNT_INFO, _merchant_account(pix_key, description)),
            _field(MERCHANT_CATEGORY_CODE, "0000"),
            _field(TRANSACTION_CURRENCY, CURRENCY_BRL),
            _field(TRANSACTION_AMOUNT, format_amount(amount)),
            _field(COUNTRY_CODE, "BR"),
            _field(MERCHANT_NAME, name),
            _field(MERCHANT_CITY, merchant_city),
            _field(ADDITIONAL_DATA, _field(TXID_FIELD, sanitize_txid(txid))),
            CRC_PREFIX,
        ]
    )
    return payload + crc16_ccitt(payload)


def _split(data: str) -> list[tuple[str, str]]:
    fields = []
    pos = 0
    while pos < len(data):
        if pos + 4 > len(data):
            raise PixPayloadError(f"Cabeçalho truncado na posição {pos}.")
        field_id = data[pos : pos + 2]
        length_str = data[pos + 2 : pos + 4]
        if not length_str.isdigit():
            raise PixPayloadError(f"Tamanho inválido no campo {field_id}.")
        length = int(length_str)
        value = data[pos + 4 : pos + 4 + length]
        if len(value) != length:
            raise PixPayloadError(f"Valor truncado no campo {field_id}.")
        fields.append((field_id, value))
        pos += 4 + length
    return fields


def parse_payload(payload: str) -> list[PixField]:
    """Decodifica o payload em campos, abrindo os templates 26 e 62."""
    parsed = []
    for field_id, value in _split(payload):
        children: tuple[PixField, ...] = ()
        if field_id in (MERCHANT_ACCOUNT_INFO, ADDITIONAL_DATA):
            children = tuple(PixField(cid, cval) for cid, cval in _split(value))
        parsed.append(PixField(field_id, value, children))
    return parsed


def verify_payload(payload: str) -> bool:
    """Confere o CRC informado no campo 63 contra o recalculado."""
    if len(payload) < 8 or payload[-8:-4] != CRC_PREFIX:
        return False
    return payload[-4:].upper() == crc16_ccitt(payload[:-4])
