"""
Efeitos de domínio aplicados quando um pagamento é confirmado.

``settle`` roda dentro do mesmo ``transaction.atomic()`` que moveu o pagamento
para ``paid`` e só é chamado por quem venceu o UPDATE condicional. Mesmo
assim cada ramo tem sua própria guarda na linha afetada: reaplicar a
liquidação de um pagamento nunca duplica dinheiro nem datas.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models import F, Model
from django.utils import timezone

from accounts.models import Plan, Profile
from marketplace.models import MarketplaceOrder, MarketplaceStore, OrderStatus
from professionals.models import (
    HirePaymentStatus,
    Professional,
    ProfessionalChatRoom,
    ProfessionalHire,
)

from ..exceptions import SettlementError
from ..models import PaymentIntent, PaymentType

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# O que reference_id aponta em cada tipo; assinatura age sobre o próprio usuário.
REFERENCE_MODELS: dict[str, type[Model]] = {
    PaymentType.LP_UNLOCK: Professional,
    PaymentType.STORE_PLAN: MarketplaceStore,
    PaymentType.MARKETPLACE_ORDER: MarketplaceOrder,
    PaymentType.PROFESSIONAL_SERVICE: ProfessionalHire,
}


def split_platform_fee(amount: Decimal, rate: Decimal | None = None) -> tuple[Decimal, Decimal]:
    """Retorna (taxa da plataforma, líquido do profissional)."""
    if rate is None:
        rate = Decimal(str(settings.PAYMENTS_PLATFORM_FEE_RATE))
    amount = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    fee = (amount * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return fee, amount - fee


def plan_expiry(now: datetime) -> datetime:
    return now + timedelta(days=settings.PAYMENTS_PLAN_DURATION_DAYS)


def reference_exists(payment_type: str, reference_id: str) -> bool:
    model = REFERENCE_MODELS.get(payment_type)
    if model is None:
        return True
    try:
        return model.objects.filter(pk=reference_id).exists()
    except (ValueError, TypeError, ValidationError):
        return False


def _get_reference(intent: PaymentIntent, queryset) -> Model:
    model = queryset.model
    try:
        return queryset.get(pk=intent.reference_id)
    except (model.DoesNotExist, ValueError, TypeError, ValidationError) as exc:
        raise SettlementError(
            f"{model._meta.verbose_name} {intent.reference_id!r} não encontrado(a) "
            f"para o pagamento {intent.pk}."
        ) from exc


def settle_lp_unlock(intent: PaymentIntent, now: datetime) -> None:
    professional = _get_reference(intent, Professional.objects.all())
    updated = (
        Professional.objects.filter(pk=professional.pk)
        .exclude(lp_payment_id=str(intent.pk))
        .update(
            lp_unlocked=True,
            lp_unlocked_at=now,
            lp_payment_id=str(intent.pk),
            updated_at=now,
        )
    )
    if updated:
        logger.info("[payments] Landing page liberada: profissional %s.", professional.pk)


def settle_subscription(intent: PaymentIntent, now: datetime) -> None:
    plan = intent.desired_plan or settings.PAYMENTS_DEFAULT_SUBSCRIPTION_PLAN
    if plan not in Plan.values:
        raise SettlementError(f"Plano desconhecido no pagamento {intent.pk}: {plan!r}.")

    profile, _ = Profile.objects.get_or_create(user_id=intent.user_id)
    updated = (
        Profile.objects.filter(pk=profile.pk)
        .exclude(plan_payment_id=str(intent.pk))
        .update(
            plan=plan,
            plan_expires_at=plan_expiry(now),
            plan_payment_id=str(intent.pk),
            updated_at=now,
        )
    )
    if updated:
        logger.info("[payments] Plano %s ativado para user=%s.", plan, intent.user_id)


def settle_store_plan(intent: PaymentIntent, now: datetime) -> None:
    store = _get_reference(intent, MarketplaceStore.objects.all())
    updated = (
        MarketplaceStore.objects.filter(pk=store.pk)
        .exclude(plan_payment_id=str(intent.pk))
        .update(
            subscription_plan=settings.PAYMENTS_STORE_PREMIUM_PLAN,
            plan_expires_at=plan_expiry(now),
            plan_payment_id=str(intent.pk),
            updated_at=now,
        )
    )
    if updated:
        logger.info("[payments] Loja %s promovida ao plano premium.", store.pk)


def settle_marketplace_order(intent: PaymentIntent, now: datetime) -> None:
    order = _get_reference(intent, MarketplaceOrder.objects.all())
    updated = MarketplaceOrder.objects.filter(pk=order.pk, status=OrderStatus.PENDING).update(
        status=OrderStatus.PAID,
        updated_at=now,
    )
    if updated:
        logger.info("[payments] Pedido %s marcado como pago.", order.pk)
    elif order.status != OrderStatus.PAID:
        logger.warning(
            "[payments] Pedido %s estava %s ao receber o pagamento %s.",
            order.pk,
            order.status,
            intent.pk,
        )


def settle_professional_service(intent: PaymentIntent, now: datetime) -> None:
    hire = _get_reference(intent, ProfessionalHire.objects.select_related("professional"))
    amount = hire.paid_amount or intent.amount
    fee, net = split_platform_fee(amount)

    updated = ProfessionalHire.objects.filter(pk=hire.pk, is_paid=False).update(
        is_paid=True,
        payment_status=HirePaymentStatus.PAID,
        paid_amount=amount,
        platform_fee=fee,
        updated_at=now,
    )
    if not updated:
        logger.info("[payments] Contratação %s já estava paga.", hire.pk)
        return

    # incremento no próprio UPDATE; nada de ler o saldo antes
    Professional.objects.filter(pk=hire.professional_id).update(
        balance=F("balance") + net,
        updated_at=now,
    )
    ProfessionalChatRoom.objects.get_or_create(
        professional_id=hire.professional_id,
        student_id=intent.user_id,
        defaults={"last_message_at": now},
    )
    logger.info(
        "[payments] Contratação %s paga: taxa=%s líquido=%s profissional=%s.",
        hire.pk,
        fee,
        net,
        hire.professional_id,
    )


HANDLERS: dict[str, Callable[[PaymentIntent, datetime], None]] = {
    PaymentType.LP_UNLOCK: settle_lp_unlock,
    PaymentType.SUBSCRIPTION: settle_subscription,
    PaymentType.STORE_PLAN: settle_store_plan,
    PaymentType.MARKETPLACE_ORDER: settle_marketplace_order,
    PaymentType.PROFESSIONAL_SERVICE: settle_professional_service,
}


def settle(intent: PaymentIntent, now: datetime | None = None) -> None:
    handler = HANDLERS.get(intent.payment_type)
    if handler is None:
        raise SettlementError(f"Tipo de pagamento sem liquidação: {intent.payment_type!r}.")
    handler(intent, now or intent.paid_at or timezone.now())
