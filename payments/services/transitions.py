from __future__ import annotations

import logging
from typing import Any

from django.utils import timezone

from ..models import PaymentIntent, PaymentStatus, PaymentTransition
from .. import realtime

logger = logging.getLogger(__name__)


def transition(
    payment_id,
    to_status: str,
    source: str,
    evidence: dict[str, Any] | None = None,
    **fields: Any,
) -> bool:
    """
    Move o pagamento de ``pending`` para ``to_status`` com um UPDATE condicional.

    Só a primeira chamada que encontrar a linha em ``pending`` altera o registro;
    as demais recebem ``False``. Esse contador de linhas é o único ponto de
    exclusão mútua do fluxo: quem recebe ``True`` é o dono da transição (e,
    no caso de ``paid``, da liquidação).
    """
    now = timezone.now()
    if to_status == PaymentStatus.PAID:
        fields.setdefault("paid_at", now)

    updated = PaymentIntent.objects.filter(pk=payment_id, status=PaymentStatus.PENDING).update(
        status=to_status,
        updated_at=now,
        **fields,
    )
    if not updated:
        return False

    PaymentTransition.objects.create(
        intent_id=payment_id,
        from_status=PaymentStatus.PENDING,
        to_status=to_status,
        source=source,
        evidence=evidence or None,
    )
    logger.info("[payments] %s: pending -> %s (%s)", payment_id, to_status, source)
    realtime.publish(payment_id, to_status)
    return True
