from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any

import requests
from django.conf import settings

from ..exceptions import GatewayError
from .base import GatewayCharge, PaymentRequest
from .qrcode_image import as_data_url

logger = logging.getLogger(__name__)

API_URL = "https://api.mercadopago.com"
BACKEND_NAME = "mercadopago"

# status do Mercado Pago -> evento de webhook normalizado
STATUS_EVENTS = {
    "approved": "payment.succeeded",
    "rejected": "payment.failed",
    "cancelled": "payment.failed",
    "refunded": "payment.refunded",
    "charged_back": "payment.refunded",
}


@dataclass
class MercadoPagoConfig:
    access_token: str
    currency: str
    webhook_url: str
    back_url: str


def get_config() -> MercadoPagoConfig:
    return MercadoPagoConfig(
        access_token=settings.MERCADOPAGO_ACCESS_TOKEN,
        currency=settings.MERCADOPAGO_CURRENCY,
        webhook_url=settings.MERCADOPAGO_WEBHOOK_URL,
        back_url=settings.MERCADOPAGO_BACK_URL,
    )


def _headers(access_token: str, idempotency_key: str | None = None) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }
    if idempotency_key:
        headers["X-Idempotency-Key"] = idempotency_key
    return headers


def _require_token(config: MercadoPagoConfig) -> None:
    if not config.access_token:
        raise GatewayError("MERCADOPAGO_ACCESS_TOKEN não configurado.")


def _post(path: str, payload: dict[str, Any], idempotency_key: str | None = None) -> dict[str, Any]:
    config = get_config()
    _require_token(config)
    try:
        resp = requests.post(
            f"{API_URL}{path}",
            json=payload,
            headers=_headers(config.access_token, idempotency_key),
            timeout=20,
        )
    except requests.RequestException as exc:
        raise GatewayError(f"Mercado Pago indisponível: {exc}") from exc
    if not resp.ok:
        raise GatewayError(f"Erro Mercado Pago ({path}): {resp.text}")
    return resp.json()


def create_preference(payload: dict[str, Any], idempotency_key: str | None = None) -> dict[str, Any]:
    return _post("/checkout/preferences", payload, idempotency_key)


def create_payment(payload: dict[str, Any], idempotency_key: str | None = None) -> dict[str, Any]:
    return _post("/v1/payments", payload, idempotency_key)


def fetch_payment(payment_id: str) -> dict[str, Any]:
    config = get_config()
    _require_token(config)
    try:
        resp = requests.get(
            f"{API_URL}/v1/payments/{payment_id}",
            headers=_headers(config.access_token),
            timeout=20,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise GatewayError(f"Erro Mercado Pago (payment {payment_id}): {exc}") from exc
    return resp.json()


def create_charge(request: PaymentRequest, payment_id: str) -> GatewayCharge:
    """Cria a cobrança (PIX direto ou Checkout Pro para cartão) e normaliza a resposta."""
    config = get_config()
    first_name, last_name = request.payer_names()
    metadata = {**request.metadata(), "payment_id": payment_id}

    if request.payment_method == "card":
        preference_payload = {
            "items": [
                {
                    "title": request.display_description,
                    "quantity": 1,
                    "unit_price": float(request.amount),
                    "currency_id": config.currency,
                }
            ],
            "payer": {"email": request.payer_email, "name": first_name, "surname": last_name},
            "external_reference": payment_id,
            "metadata": metadata,
        }
        if config.back_url:
            preference_payload["back_urls"] = {
                "success": config.back_url,
                "failure": config.back_url,
                "pending": config.back_url,
            }
            preference_payload["auto_return"] = "approved"
        if config.webhook_url:
            preference_payload["notification_url"] = config.webhook_url

        preference = create_preference(preference_payload, idempotency_key=payment_id)
        return GatewayCharge(
            transaction_id=str(preference.get("id", "")),
            payment_url=preference.get("init_point") or "",
            raw=preference,
        )

    payment_payload = {
        "transaction_amount": float(request.amount),
        "description": request.display_description,
        "payment_method_id": "pix",
        "payer": {"email": request.payer_email, "first_name": first_name, "last_name": last_name},
        "external_reference": payment_id,
        "metadata": metadata,
    }
    if config.webhook_url:
        payment_payload["notification_url"] = config.webhook_url

    payment = create_payment(payment_payload, idempotency_key=payment_id)
    transaction_data = (payment.get("point_of_interaction") or {}).get("transaction_data") or {}
    return GatewayCharge(
        transaction_id=str(payment.get("id", "")),
        payload=transaction_data.get("qr_code") or "",
        qr_image=as_data_url(transaction_data.get("qr_code_base64")),
        payment_url=transaction_data.get("ticket_url") or "",
        raw=payment,
    )


def extract_payment_id(query_params: dict[str, Any], payload: dict[str, Any]) -> str | None:
    payment_id = query_params.get("data.id") or query_params.get("id")
    if payment_id:
        return str(payment_id)

    data = payload.get("data") or {}
    data_id = data.get("id")
    if data_id:
        return str(data_id)
    return None


def validate_webhook_signature(
    x_signature: str | None,
    x_request_id: str | None,
    data_id: str | None,
    secret: str,
) -> bool:
    """
    Valida a assinatura x-signature do webhook MercadoPago.
    Sem secret configurado a notificação é recusada.
    Documentação: https://www.mercadopago.com.br/developers/en/docs/your-integrations/notifications/webhooks
    """
    if not secret or not secret.strip():
        logger.error("[mercadopago] MERCADOPAGO_WEBHOOK_SECRET ausente; webhook recusado.")
        return False

    if not x_signature or not data_id:
        return False

    parts = [p.strip() for p in x_signature.split(",")]
    ts = None
    received_hash = None
    for part in parts:
        if "=" in part:
            key, value = part.split("=", 1)
            key, value = key.strip(), value.strip()
            if key == "ts":
                ts = value
            elif key == "v1":
                received_hash = value

    if not ts or not received_hash:
        return False

    manifest_parts = [f"id:{str(data_id).lower() if data_id.isalnum() else data_id}"]
    if x_request_id:
        manifest_parts.append(f"request-id:{x_request_id}")
    manifest_parts.append(f"ts:{ts}")
    manifest = ";".join(manifest_parts) + ";"

    expected_hash = hmac.new(
        secret.encode(),
        manifest.encode(),
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(expected_hash, received_hash)
