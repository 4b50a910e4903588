from __future__ import annotations

import logging
from typing import Any

from django.core.exceptions import ValidationError
from django.db.models import QuerySet

from ..exceptions import PaymentError, PaymentNotFound, PaymentValidationError
from ..forms import CreatePaymentForm
from ..models import PaymentIntent
from .base import PaymentRequest, PaymentResult
from .expiration import expire_if_stale
from .pix import PixPayloadError
from .providers import get_provider

logger = logging.getLogger(__name__)


def create_payment(user, data: dict[str, Any]) -> PaymentResult:
    """
    Valida os dados, escolhe o provedor pela tabela de tipos e cria o pagamento.

    Erros de validação levantam PaymentValidationError antes de qualquer
    gravação; falhas do provedor levantam GatewayError/PaymentError.
    """
    form = CreatePaymentForm(data)
    if not form.is_valid():
        errors = {field: [str(e) for e in errs] for field, errs in form.errors.items()}
        logger.info("[payments] Criação recusada para user=%s: %s", user.pk, errors)
        raise PaymentValidationError(errors)

    cleaned = form.cleaned_data
    request = PaymentRequest(
        user=user,
        amount=cleaned["amount"],
        payment_type=cleaned["payment_type"],
        payment_method=cleaned["payment_method"],
        payer_email=cleaned["payer_email"],
        payer_name=cleaned.get("payer_name") or "",
        reference_id=cleaned["reference_id"],
        description=cleaned.get("description") or "",
        desired_plan=cleaned.get("desired_plan") or "",
    )
    provider = get_provider(request.payment_type, cleaned.get("requested_provider") or "")
    try:
        return provider.create(request)
    except PixPayloadError as exc:
        logger.error("[pix] Payload inválido para user=%s: %s", user.pk, exc)
        raise PaymentError(f"Não foi possível gerar o PIX: {exc}") from exc


def get_intent(payment_id, user=None) -> PaymentIntent:
    """Busca o pagamento (opcionalmente restrito ao dono); ausente vira PaymentNotFound."""
    queryset = PaymentIntent.objects.all()
    if user is not None:
        queryset = queryset.for_user(user)
    try:
        return queryset.get(pk=payment_id)
    except (PaymentIntent.DoesNotExist, ValueError, ValidationError) as exc:
        raise PaymentNotFound(payment_id) from exc


def list_payments(user, payment_type: str | None = None) -> list[PaymentIntent]:
    queryset: QuerySet[PaymentIntent] = PaymentIntent.objects.for_user(user)
    if payment_type:
        queryset = queryset.filter(payment_type=payment_type)
    intents = list(queryset)
    for intent in intents:
        expire_if_stale(intent)
    return intents


def get_payment_by_reference(payment_type: str, reference_id: str, user=None) -> PaymentIntent:
    """Pagamento mais recente para um agregado de domínio (pedido, loja...)."""
    queryset = PaymentIntent.objects.filter(payment_type=payment_type, reference_id=reference_id)
    if user is not None:
        queryset = queryset.for_user(user)
    intent = queryset.order_by("-created_at").first()
    if intent is None:
        raise PaymentNotFound(f"{payment_type}:{reference_id}")
    expire_if_stale(intent)
    return intent
