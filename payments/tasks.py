import logging

from celery import shared_task

from payments.services.expiration import expire_stale

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    max_retries=3,
)
def expire_stale_payments(self) -> int:
    """Expira pendentes vencidos que ninguém leu. As leituras não dependem desta task."""
    expired = expire_stale()
    logger.info("[payments] Limpeza de pendentes vencidos: %s expirado(s).", expired)
    return expired
