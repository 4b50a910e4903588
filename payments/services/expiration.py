from __future__ import annotations

import logging
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from ..models import ConfirmationSource, PaymentIntent, PaymentStatus
from .transitions import transition

logger = logging.getLogger(__name__)


def is_stale(intent: PaymentIntent, now: datetime | None = None) -> bool:
    return intent.status == PaymentStatus.PENDING and (now or timezone.now()) > intent.expires_at


def expire_if_stale(intent: PaymentIntent, source: str = ConfirmationSource.READ) -> str:
    """
    Expiração preguiçosa: chamada em toda leitura de status.
    Atualiza a instância em memória e devolve o status efetivo.
    """
    if not is_stale(intent):
        return intent.status

    with transaction.atomic():
        changed = transition(
            intent.pk,
            PaymentStatus.EXPIRED,
            source,
            evidence={"expires_at": intent.expires_at.isoformat()},
        )
    if not changed:
        # outra origem chegou primeiro; o valor gravado é o que vale
        intent.refresh_from_db(fields=["status", "paid_at", "updated_at"])
        return intent.status

    intent.status = PaymentStatus.EXPIRED
    return intent.status


def expire_stale(now: datetime | None = None) -> int:
    """Varre os pendentes vencidos. Usado só pela tarefa periódica de limpeza."""
    expired = 0
    for intent in PaymentIntent.objects.stale(now).only("id", "status", "expires_at"):
        if expire_if_stale(intent, source=ConfirmationSource.READ) == PaymentStatus.EXPIRED:
            expired += 1
    if expired:
        logger.info("[payments] %s pagamento(s) pendente(s) expirado(s).", expired)
    return expired
