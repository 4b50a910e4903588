"""Development settings."""

from __future__ import annotations

from .base import *  # noqa

DEBUG = env.bool("DJANGO_DEBUG", default=True)

SECRET_KEY = env(
    "DJANGO_SECRET_KEY",
    default="django-insecure-dev-secret-key",
)

ALLOWED_HOSTS = env.list("DJANGO_ALLOWED_HOSTS", default=["127.0.0.1", "localhost"])

# DATABASE_URL vazio cai no SQLite de base.py; o Postgres do compose só
# resolve pelo host "postgres", então fora do Docker use DATABASE_HOST=localhost.
if env("DATABASE_HOST", default=None):
    DATABASES["default"]["HOST"] = env("DATABASE_HOST")  # noqa: F405

INSTALLED_APPS += ["debug_toolbar"]  # noqa: F405

INTERNAL_IPS = ["127.0.0.1", "localhost"]

MIDDLEWARE = [
    "debug_toolbar.middleware.DebugToolbarMiddleware",
] + MIDDLEWARE  # noqa: F405

DEBUG_TOOLBAR_CONFIG = {
    "SHOW_TOOLBAR_CALLBACK": lambda request: DEBUG,
}

# Chave fictícia: o PIX gerado em dev não deve cair na conta real
PAYMENTS_PIX_KEY = env("PAYMENTS_PIX_KEY", default="dev@nexfit.local")  # noqa: F405

# Log detalhado do fluxo de pagamento durante o desenvolvimento
LOGGING["loggers"]["payments"]["level"] = env("PAYMENTS_LOG_LEVEL", default="DEBUG")  # noqa: F405
