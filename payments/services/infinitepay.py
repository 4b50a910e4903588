from __future__ import annotations

import hmac
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from hashlib import sha256
from typing import Any

import requests
from django.conf import settings

from ..exceptions import GatewayError
from .base import GatewayCharge, PaymentRequest
from .qrcode_image import as_data_url

logger = logging.getLogger(__name__)

BACKEND_NAME = "infinitepay"
SIGNATURE_HEADER = "HTTP_X_INFINITEPAY_SIGNATURE"
LINK_TTL_SECONDS = 86400

PAYMENT_METHODS = {
    "pix": ["pix"],
    "card": ["credit_card"],
}


@dataclass
class InfinitePayConfig:
    api_key: str
    api_url: str
    webhook_secret: str
    webhook_url: str


def get_config() -> InfinitePayConfig:
    return InfinitePayConfig(
        api_key=settings.INFINITEPAY_API_KEY,
        api_url=settings.INFINITEPAY_API_URL.rstrip("/"),
        webhook_secret=settings.INFINITEPAY_WEBHOOK_SECRET,
        webhook_url=settings.INFINITEPAY_WEBHOOK_URL,
    )


def _headers(config: InfinitePayConfig) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {config.api_key}",
        "Content-Type": "application/json",
    }


def create_payment_link(payload: dict[str, Any]) -> dict[str, Any]:
    config = get_config()
    if not config.api_key:
        raise GatewayError("INFINITEPAY_API_KEY não configurado.")

    try:
        resp = requests.post(
            f"{config.api_url}/payment_links",
            json=payload,
            headers=_headers(config),
            timeout=20,
        )
    except requests.RequestException as exc:
        raise GatewayError(f"InfinitePay indisponível: {exc}") from exc
    if not resp.ok:
        raise GatewayError(f"Erro InfinitePay ({resp.status_code}): {resp.text}")
    return resp.json()


def to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


def create_charge(request: PaymentRequest, payment_id: str) -> GatewayCharge:
    config = get_config()
    payload = {
        "amount": to_cents(request.amount),
        "description": request.display_description,
        "order_nsu": payment_id,
        "payment_methods": PAYMENT_METHODS.get(request.payment_method, ["pix", "credit_card"]),
        "expires_in": LINK_TTL_SECONDS,
        "metadata": request.metadata(),
    }
    if config.webhook_url:
        payload["webhook_url"] = config.webhook_url

    data = create_payment_link(payload)
    return GatewayCharge(
        transaction_id=str(data.get("slug") or data.get("id") or ""),
        payload=data.get("pix_code") or data.get("qr_code_text") or "",
        qr_image=data.get("qr_code_url") or as_data_url(data.get("qr_code_image")),
        payment_url=data.get("payment_url") or data.get("url") or "",
        raw=data,
    )


def verify_webhook_signature(
    payload_body: bytes, signature_header: str | None, webhook_secret: str
) -> bool:
    """HMAC-SHA256 do corpo cru. Sem secret configurado o webhook é recusado."""
    if not webhook_secret:
        logger.error("[infinitepay] INFINITEPAY_WEBHOOK_SECRET ausente; webhook recusado.")
        return False
    if not signature_header:
        return False

    expected = hmac.new(webhook_secret.encode("utf-8"), payload_body, sha256).hexdigest()
    signature = signature_header.replace("sha256=", "").strip()
    return hmac.compare_digest(expected, signature)


def parse_webhook_payload(raw_body: bytes) -> dict[str, Any] | None:
    """Devolve None quando o corpo não é um objeto JSON."""
    try:
        data = json.loads(raw_body.decode("utf-8")) if raw_body else None
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("[infinitepay] Webhook com JSON invalido.")
        return None
    if not isinstance(data, dict):
        return None
    return data
