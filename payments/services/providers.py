"""Estratégias de cobrança: PIX gerado localmente ou delegado a um gateway."""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from types import ModuleType

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ..exceptions import GatewayError
from ..models import PaymentIntent, PaymentProvider, PaymentType
from . import infinitepay, mercadopago, pix
from .base import GatewayCharge, PaymentRequest, PaymentResult
from .qrcode_image import render_data_url

logger = logging.getLogger(__name__)

__all__ = [
    "GATEWAY_BACKENDS",
    "GatewayCharge",
    "GatewayProvider",
    "ManualPixProvider",
    "PROVIDER_BY_TYPE",
    "PaymentProviderStrategy",
    "PaymentRequest",
    "PaymentResult",
    "get_provider",
]

GATEWAY_BACKENDS: dict[str, ModuleType] = {
    mercadopago.BACKEND_NAME: mercadopago,
    infinitepay.BACKEND_NAME: infinitepay,
}


def _expires_at():
    return timezone.now() + timedelta(hours=settings.PAYMENTS_INTENT_TTL_HOURS)


def _result(intent: PaymentIntent) -> PaymentResult:
    return PaymentResult(
        payment_id=str(intent.pk),
        provider=intent.provider,
        payload=intent.payload,
        qr_image=intent.qr_image,
        expires_at=intent.expires_at,
        payment_url=intent.payment_url,
    )


class PaymentProviderStrategy:
    name: str = ""

    def create(self, request: PaymentRequest) -> PaymentResult:
        raise NotImplementedError


class ManualPixProvider(PaymentProviderStrategy):
    """PIX copia e cola montado aqui; a confirmação vem da equipe (admin)."""

    name = PaymentProvider.MANUAL

    def create(self, request: PaymentRequest) -> PaymentResult:
        # a linha precisa existir antes do payload: o TXID sai do id do pagamento
        with transaction.atomic():
            intent = PaymentIntent.objects.create(
                user=request.user,
                amount=request.amount,
                payment_type=request.payment_type,
                reference_id=request.reference_id,
                provider=self.name,
                payment_method=request.payment_method,
                description=request.description,
                desired_plan=request.desired_plan,
                expires_at=_expires_at(),
            )
            intent.payload = pix.build_payload(
                pix_key=settings.PAYMENTS_PIX_KEY,
                receiver_name=settings.PAYMENTS_PIX_RECEIVER_NAME,
                amount=request.amount,
                description=request.display_description,
                txid=intent.transaction_reference,
                city=settings.PAYMENTS_PIX_RECEIVER_CITY,
            )
            intent.qr_image = self._render(intent)
            intent.save(update_fields=["payload", "qr_image", "updated_at"])

        logger.info("[pix] Pagamento manual criado: %s (%s).", intent.pk, intent.payment_type)
        return _result(intent)

    @staticmethod
    def _render(intent: PaymentIntent) -> str:
        try:
            return render_data_url(intent.payload)
        except Exception:
            # o copia e cola continua utilizável sem a imagem
            logger.warning("[pix] Falha ao renderizar QR code de %s.", intent.pk, exc_info=True)
            return ""


class GatewayProvider(PaymentProviderStrategy):
    """
    Cobrança delegada ao gateway configurado em PAYMENTS_GATEWAY_BACKEND.

    O id do pagamento é gerado antes da chamada e enviado como chave de
    correlação; a linha só é gravada depois que o gateway aceita a cobrança.
    """

    name = PaymentProvider.GATEWAY

    def __init__(self, backend: str | None = None):
        self.backend_name = backend or settings.PAYMENTS_GATEWAY_BACKEND
        if self.backend_name not in GATEWAY_BACKENDS:
            raise GatewayError(f"Gateway desconhecido: {self.backend_name!r}.")
        self.backend = GATEWAY_BACKENDS[self.backend_name]

    def create(self, request: PaymentRequest) -> PaymentResult:
        payment_id = uuid.uuid4()
        expires_at = _expires_at()
        try:
            charge: GatewayCharge = self.backend.create_charge(request, str(payment_id))
        except GatewayError:
            logger.error(
                "[payments] Gateway %s recusou a cobrança %s.",
                self.backend_name,
                payment_id,
                exc_info=True,
            )
            raise

        intent = PaymentIntent.objects.create(
            id=payment_id,
            user=request.user,
            amount=request.amount,
            payment_type=request.payment_type,
            reference_id=request.reference_id,
            provider=self.name,
            payment_method=request.payment_method,
            gateway_backend=self.backend_name,
            description=request.description,
            desired_plan=request.desired_plan,
            payload=charge.payload,
            qr_image=charge.qr_image,
            payment_url=charge.payment_url,
            external_transaction_id=charge.transaction_id,
            raw_payload=charge.raw or None,
            expires_at=expires_at,
        )
        logger.info(
            "[payments] Pagamento via %s criado: %s (%s).",
            self.backend_name,
            intent.pk,
            intent.payment_type,
        )
        return _result(intent)


PROVIDER_BY_TYPE: dict[str, type[PaymentProviderStrategy]] = {
    PaymentType.SUBSCRIPTION: GatewayProvider,
    PaymentType.STORE_PLAN: GatewayProvider,
    PaymentType.MARKETPLACE_ORDER: GatewayProvider,
    PaymentType.LP_UNLOCK: ManualPixProvider,
    PaymentType.PROFESSIONAL_SERVICE: ManualPixProvider,
}

_PROVIDERS: dict[str, type[PaymentProviderStrategy]] = {
    PaymentProvider.MANUAL: ManualPixProvider,
    PaymentProvider.GATEWAY: GatewayProvider,
}


def get_provider(payment_type: str, requested_provider: str = "") -> PaymentProviderStrategy:
    """Provedor pedido explicitamente vence a tabela por tipo."""
    if requested_provider:
        return _PROVIDERS[requested_provider]()
    return PROVIDER_BY_TYPE[payment_type]()
