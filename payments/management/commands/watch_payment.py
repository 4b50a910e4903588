from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from payments.exceptions import PaymentNotFound
from payments.models import PaymentStatus
from payments.services.watcher import PaymentWatcher


class Command(BaseCommand):
    help = "Acompanha um pagamento (consulta + tempo real) até um status final."

    def add_arguments(self, parser):
        parser.add_argument("payment_id", help="UUID do pagamento")
        parser.add_argument(
            "--interval",
            type=float,
            help="Intervalo entre consultas, em segundos (padrão: PAYMENTS_WATCH_POLL_SECONDS).",
        )
        parser.add_argument(
            "--timeout",
            type=float,
            help="Desiste depois de N segundos (opcional).",
        )

    def handle(self, *args, **options):
        payment_id = options["payment_id"]

        def on_change(status: str) -> None:
            self.stdout.write(f"{payment_id}: {status}")

        watcher = PaymentWatcher(
            payment_id,
            poll_interval=options.get("interval"),
            timeout=options.get("timeout"),
            on_change=on_change,
        )
        try:
            status = watcher.run()
        except PaymentNotFound as exc:
            raise CommandError(str(exc)) from exc

        if status == PaymentStatus.PAID:
            self.stdout.write(self.style.SUCCESS(f"Pagamento {payment_id} confirmado."))
        elif status == PaymentStatus.PENDING:
            self.stdout.write(self.style.WARNING(f"Pagamento {payment_id} ainda pendente."))
        else:
            self.stdout.write(self.style.ERROR(f"Pagamento {payment_id} encerrado: {status}."))
