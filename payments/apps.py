from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "pagamentos"

    def ready(self) -> None:
        import payments.signals  # noqa: F401
