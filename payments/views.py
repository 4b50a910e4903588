from __future__ import annotations

import json
import logging
from typing import Any

from django.conf import settings
from django.db import transaction
from django.http import HttpRequest, JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from .exceptions import GatewayError, PaymentError, PaymentNotFound, PaymentValidationError
from .models import ConfirmationSource, PaymentIntent, PaymentType
from .services import infinitepay, mercadopago
from .services.intents import create_payment, get_payment_by_reference, list_payments
from .services.reconciler import GatewayEvent, cancel_payment, check_status, confirm

logger = logging.getLogger(__name__)


def _serialize(intent: PaymentIntent) -> dict[str, Any]:
    return {
        "payment_id": str(intent.pk),
        "payment_type": intent.payment_type,
        "reference_id": intent.reference_id or None,
        "amount": str(intent.amount),
        "provider": intent.provider,
        "payment_method": intent.payment_method,
        "status": intent.status,
        "payload": intent.payload,
        "qr_image": intent.qr_image,
        "payment_url": intent.payment_url or None,
        "expires_at": intent.expires_at.isoformat(),
        "paid_at": intent.paid_at.isoformat() if intent.paid_at else None,
        "created_at": intent.created_at.isoformat(),
    }


def _json_body(request: HttpRequest) -> dict[str, Any] | None:
    try:
        data = json.loads(request.body.decode("utf-8")) if request.body else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


class JsonLoginRequiredMixin:
    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"detail": "unauthorized"}, status=401)
        return super().dispatch(request, *args, **kwargs)


class PaymentIntentView(JsonLoginRequiredMixin, View):
    def get(self, request: HttpRequest) -> JsonResponse:
        payment_type = request.GET.get("payment_type") or None
        intents = list_payments(request.user, payment_type=payment_type)
        return JsonResponse({"payments": [_serialize(intent) for intent in intents]})

    def post(self, request: HttpRequest) -> JsonResponse:
        if request.content_type == "application/json":
            data = _json_body(request)
            if data is None:
                return JsonResponse({"errors": {"__all__": ["JSON inválido."]}}, status=400)
        else:
            data = request.POST.dict()

        data.setdefault("payer_email", request.user.email)
        data.setdefault("payer_name", request.user.get_full_name())

        try:
            result = create_payment(request.user, data)
        except PaymentValidationError as exc:
            return JsonResponse({"errors": exc.errors}, status=400)
        except (GatewayError, PaymentError) as exc:
            return JsonResponse({"error": str(exc)}, status=502)
        return JsonResponse(result.as_dict(), status=201)


class PaymentStatusView(JsonLoginRequiredMixin, View):
    """Botão "já paguei": relê o pagamento, aplicando a expiração."""

    def get(self, request: HttpRequest, payment_id) -> JsonResponse:
        try:
            status = check_status(payment_id, user=request.user)
        except PaymentNotFound:
            return JsonResponse({"error": "Pagamento não encontrado."}, status=404)
        return JsonResponse({"payment_id": str(payment_id), "status": status})


class CancelPaymentView(JsonLoginRequiredMixin, View):
    def post(self, request: HttpRequest, payment_id) -> JsonResponse:
        try:
            result = cancel_payment(payment_id, user=request.user)
        except PaymentNotFound:
            return JsonResponse({"error": "Pagamento não encontrado."}, status=404)
        return JsonResponse(result.as_dict())


class PaymentByReferenceView(JsonLoginRequiredMixin, View):
    def get(self, request: HttpRequest, payment_type: str, reference_id: str) -> JsonResponse:
        if payment_type not in PaymentType.values:
            return JsonResponse({"error": "Tipo de pagamento inválido."}, status=404)
        try:
            intent = get_payment_by_reference(payment_type, reference_id, user=request.user)
        except PaymentNotFound:
            return JsonResponse({"error": "Pagamento não encontrado."}, status=404)
        return JsonResponse(_serialize(intent))


def _apply_gateway_event(event: GatewayEvent) -> JsonResponse:
    if event.target_status is None:
        logger.info("[payments] Evento de webhook ignorado: %s", event.event)
        return JsonResponse({"success": True, "status": "ignored"})

    try:
        result = confirm(event.payment_id, ConfirmationSource.WEBHOOK, event.evidence())
    except PaymentNotFound:
        logger.error("[payments] Webhook para pagamento inexistente: %s", event.payment_id)
        return JsonResponse({"error": f"Pagamento não encontrado: {event.payment_id}"}, status=404)
    except PaymentError as exc:
        logger.exception("[payments] Falha ao processar webhook de %s.", event.payment_id)
        return JsonResponse({"error": str(exc)}, status=500)
    except Exception:
        logger.exception("[payments] Erro inesperado no webhook de %s.", event.payment_id)
        return JsonResponse({"error": "Falha interna ao processar o webhook."}, status=500)
    return JsonResponse({"success": True, "status": result.status})


@method_decorator(csrf_exempt, name="dispatch")
@method_decorator(transaction.non_atomic_requests, name="dispatch")
class GatewayWebhookView(View):
    """Webhook no formato ``{event, order_nsu, transaction_nsu, ...}`` (InfinitePay)."""

    def post(self, request: HttpRequest) -> JsonResponse:
        signature = request.META.get(infinitepay.SIGNATURE_HEADER)
        if not infinitepay.verify_webhook_signature(
            request.body, signature, settings.INFINITEPAY_WEBHOOK_SECRET
        ):
            logger.warning("[infinitepay] Assinatura de webhook inválida.")
            return JsonResponse({"error": "Assinatura inválida."}, status=401)

        payload = infinitepay.parse_webhook_payload(request.body)
        if payload is None:
            return JsonResponse({"error": "JSON inválido."}, status=400)
        try:
            event = GatewayEvent.from_payload(payload)
        except ValueError as exc:
            return JsonResponse({"error": str(exc)}, status=400)
        return _apply_gateway_event(event)


@method_decorator(csrf_exempt, name="dispatch")
@method_decorator(transaction.non_atomic_requests, name="dispatch")
class MercadoPagoWebhookView(View):
    def post(self, request: HttpRequest) -> JsonResponse:
        payload = _json_body(request)
        if payload is None:
            return JsonResponse({"error": "JSON inválido."}, status=400)

        mp_payment_id = mercadopago.extract_payment_id(request.GET, payload)
        if not mercadopago.validate_webhook_signature(
            request.headers.get("x-signature"),
            request.headers.get("x-request-id"),
            mp_payment_id,
            settings.MERCADOPAGO_WEBHOOK_SECRET,
        ):
            logger.warning("[mercadopago] Assinatura de webhook inválida.")
            return JsonResponse({"error": "Assinatura inválida."}, status=401)

        topic = payload.get("type") or payload.get("topic") or request.GET.get("topic") or "payment"
        if topic != "payment":
            return JsonResponse({"success": True, "status": "ignored"})

        try:
            payment_data = mercadopago.fetch_payment(mp_payment_id)
        except GatewayError as exc:
            logger.error("[mercadopago] Falha ao buscar pagamento %s: %s", mp_payment_id, exc)
            return JsonResponse({"error": str(exc)}, status=500)

        metadata = payment_data.get("metadata") or {}
        payment_id = payment_data.get("external_reference") or metadata.get("payment_id")
        if not payment_id:
            logger.error("[mercadopago] Pagamento %s sem external_reference.", mp_payment_id)
            return JsonResponse({"error": "Pagamento sem referência."}, status=404)

        mp_status = payment_data.get("status") or ""
        event = GatewayEvent(
            event=mercadopago.STATUS_EVENTS.get(mp_status, f"mercadopago.{mp_status}"),
            payment_id=str(payment_id),
            transaction_id=str(payment_data.get("id") or mp_payment_id),
            receipt_url=(
                (payment_data.get("transaction_details") or {}).get("external_resource_url") or ""
            ),
            capture_method=payment_data.get("payment_type_id") or "",
            raw=payment_data,
        )
        return _apply_gateway_event(event)
