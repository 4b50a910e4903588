from django.apps import AppConfig


class AccountsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"
    verbose_name = "contas"

    def ready(self) -> None:
        import accounts.signals  # noqa: F401
