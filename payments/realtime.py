"""
Canal de mudanças de status dos pagamentos.

Os assinantes se registram por ``payment_id`` e recebem o novo status a cada
alteração da linha. A notificação só é disparada depois do commit da
transação que alterou o pagamento, de modo que nenhum assinante observa um
status que ainda pode ser revertido. O canal é em processo (Django Signal);
entre processos o cliente continua coberto pela consulta periódica.
"""

from __future__ import annotations

import logging
from typing import Callable

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# kwargs enviados: payment_id (str), status (str)
payment_status_changed = Signal()

Listener = Callable[[str, str], None]


def publish(payment_id, status: str) -> None:
    """Agenda a notificação para depois do commit da transação corrente."""
    payment_id = str(payment_id)

    def _send() -> None:
        logger.debug("[payments] realtime %s -> %s", payment_id, status)
        payment_status_changed.send(sender=None, payment_id=payment_id, status=str(status))

    transaction.on_commit(_send)


def subscribe(payment_id, callback: Listener) -> Callable[[], None]:
    """
    Registra ``callback(payment_id, status)`` para um único pagamento.
    Devolve a função que cancela a assinatura.
    """
    wanted = str(payment_id)

    def _receiver(sender, payment_id: str, status: str, **kwargs) -> None:
        if payment_id == wanted:
            callback(payment_id, status)

    payment_status_changed.connect(_receiver, weak=False)

    def unsubscribe() -> None:
        payment_status_changed.disconnect(_receiver)

    return unsubscribe
