from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from django.conf import settings

from .. import realtime
from ..models import TERMINAL_STATUSES, ConfirmationSource
from .reconciler import confirm

logger = logging.getLogger(__name__)


class PaymentWatcher:
    """
    Acompanha um pagamento do lado do cliente até um status final.

    Combina dois transportes que alimentam o mesmo ``confirm``: a consulta
    periódica e a notificação em tempo real. A notificação apenas acorda o
    laço antes do intervalo; o status sempre vem de uma nova leitura da linha.
    """

    def __init__(
        self,
        payment_id,
        user=None,
        poll_interval: float | None = None,
        timeout: float | None = None,
        on_change: Callable[[str], None] | None = None,
    ):
        self.payment_id = str(payment_id)
        self.user = user
        self.poll_interval = (
            settings.PAYMENTS_WATCH_POLL_SECONDS if poll_interval is None else poll_interval
        )
        self.timeout = timeout
        self.on_change = on_change
        self.status: str | None = None
        self._woken = threading.Event()

    def _on_push(self, payment_id: str, status: str) -> None:
        logger.debug("[payments] watcher %s recebeu push %s.", payment_id, status)
        self._woken.set()

    def _read(self, source: str) -> str:
        status = confirm(self.payment_id, source, user=self.user).status
        if status != self.status:
            self.status = status
            if self.on_change is not None:
                self.on_change(status)
        return status

    def run(self) -> str:
        """Bloqueia até um status final ou até o timeout; devolve o último status lido."""
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        unsubscribe = realtime.subscribe(self.payment_id, self._on_push)
        try:
            source = ConfirmationSource.POLL
            while True:
                if self._read(source) in TERMINAL_STATUSES:
                    return self.status

                wait = self.poll_interval
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return self.status
                    wait = min(wait, remaining)

                pushed = self._woken.wait(wait)
                self._woken.clear()
                source = ConfirmationSource.REALTIME if pushed else ConfirmationSource.POLL
        finally:
            unsubscribe()
