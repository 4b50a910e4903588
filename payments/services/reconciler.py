"""
Ponto único de confirmação dos pagamentos.

Webhook, consulta do cliente ("já paguei"), notificação em tempo real e a
confirmação manual da equipe chegam todos em ``confirm``. Apenas as origens
autoritativas (webhook e admin) podem mover um pagamento para um status
final; consulta e tempo real só observam a linha e aplicam a expiração.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from django.db import transaction

from ..models import (
    AUTHORITATIVE_SOURCES,
    ConfirmationSource,
    PaymentIntent,
    PaymentStatus,
)
from .expiration import expire_if_stale
from .intents import get_intent
from .settlement import settle
from .transitions import transition

logger = logging.getLogger(__name__)

EVENT_STATUS = {
    "payment.succeeded": PaymentStatus.PAID,
    "payment.failed": PaymentStatus.FAILED,
    "payment.refunded": PaymentStatus.REFUNDED,
}


@dataclass(frozen=True)
class Evidence:
    """O que a origem afirma sobre o pagamento."""

    status: str = PaymentStatus.PAID
    transaction_id: str = ""
    receipt_url: str = ""
    capture_method: str = ""
    raw: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        data = {
            "status": str(self.status),
            "transaction_id": self.transaction_id,
            "receipt_url": self.receipt_url,
            "capture_method": self.capture_method,
        }
        return {key: value for key, value in data.items() if value}

    def intent_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if self.transaction_id:
            fields["external_transaction_id"] = self.transaction_id[:120]
        if self.status == PaymentStatus.PAID:
            if self.receipt_url:
                fields["receipt_url"] = self.receipt_url[:500]
            if self.capture_method:
                fields["capture_method"] = self.capture_method[:30]
            if self.raw is not None:
                fields["raw_payload"] = self.raw
        return fields


@dataclass(frozen=True)
class GatewayEvent:
    """Webhook já normalizado: ``{event, order_nsu, transaction_nsu, ...}``."""

    event: str
    payment_id: str
    transaction_id: str = ""
    receipt_url: str = ""
    capture_method: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> GatewayEvent:
        event = data.get("event")
        payment_id = data.get("order_nsu")
        if not isinstance(event, str) or not event:
            raise ValueError("Campo 'event' ausente.")
        if not payment_id:
            raise ValueError("Campo 'order_nsu' ausente.")
        return cls(
            event=event,
            payment_id=str(payment_id),
            transaction_id=str(data.get("transaction_nsu") or ""),
            receipt_url=str(data.get("receipt_url") or ""),
            capture_method=str(data.get("capture_method") or ""),
            raw=data,
        )

    @property
    def target_status(self) -> str | None:
        return EVENT_STATUS.get(self.event)

    def evidence(self) -> Evidence:
        return Evidence(
            status=self.target_status or PaymentStatus.PAID,
            transaction_id=self.transaction_id,
            receipt_url=self.receipt_url,
            capture_method=self.capture_method,
            raw=self.raw,
        )


@dataclass(frozen=True)
class ConfirmationResult:
    payment_id: str
    status: str
    changed: bool

    def as_dict(self) -> dict[str, Any]:
        return {"payment_id": self.payment_id, "status": str(self.status)}


def _observe(intent: PaymentIntent, source: str) -> ConfirmationResult:
    before = intent.status
    status = expire_if_stale(intent, source=source)
    return ConfirmationResult(str(intent.pk), status, changed=status != before)


def confirm(
    payment_id,
    source: str,
    evidence: Evidence | None = None,
    user=None,
) -> ConfirmationResult:
    """
    Aplica um sinal de confirmação ao pagamento.

    Só o primeiro sinal autoritativo que encontrar o pagamento em ``pending``
    altera o status; para ``paid`` a liquidação roda no mesmo bloco atômico e
    uma falha nela desfaz também a transição. Sinais repetidos ou tardios
    retornam ``changed=False``.
    """
    intent = get_intent(payment_id, user=user)

    if source not in AUTHORITATIVE_SOURCES:
        return _observe(intent, source)

    evidence = evidence or Evidence()
    target = evidence.status
    if target not in (PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.REFUNDED):
        raise ValueError(f"Status de confirmação inválido: {target!r}.")
    if target != PaymentStatus.PAID and source != ConfirmationSource.WEBHOOK:
        raise ValueError("Falha e reembolso só chegam pelo webhook do gateway.")

    if intent.status != PaymentStatus.PENDING:
        log = logger.warning if intent.status != target else logger.info
        log(
            "[payments] Sinal %s (%s) ignorado: %s já está %s.",
            target,
            source,
            intent.pk,
            intent.status,
        )
        return ConfirmationResult(str(intent.pk), intent.status, changed=False)

    with transaction.atomic():
        changed = transition(
            intent.pk,
            target,
            source,
            evidence=evidence.as_dict(),
            **evidence.intent_fields(),
        )
        intent.refresh_from_db()
        if changed and target == PaymentStatus.PAID:
            settle(intent)

    if not changed:
        logger.info(
            "[payments] Sinal %s (%s) para %s perdeu a corrida; status atual %s.",
            target,
            source,
            intent.pk,
            intent.status,
        )
    return ConfirmationResult(str(intent.pk), intent.status, changed=changed)


def check_status(payment_id, user=None) -> str:
    """Leitura de status com expiração preguiçosa; id desconhecido levanta PaymentNotFound."""
    return confirm(payment_id, ConfirmationSource.POLL, user=user).status


def cancel_payment(payment_id, user=None) -> ConfirmationResult:
    intent = get_intent(payment_id, user=user)
    if expire_if_stale(intent) != PaymentStatus.PENDING:
        return ConfirmationResult(str(intent.pk), intent.status, changed=False)

    with transaction.atomic():
        changed = transition(intent.pk, PaymentStatus.CANCELLED, ConfirmationSource.USER)
    intent.refresh_from_db(fields=["status", "paid_at", "updated_at"])
    return ConfirmationResult(str(intent.pk), intent.status, changed=changed)
