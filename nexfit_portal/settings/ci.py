"""
Configurações para CI (GitHub Actions e outros pipelines).

Usa SQLite em memória para testes rápidos, sem PostgreSQL/Redis.
"""

from __future__ import annotations

from .base import *  # noqa: F401, F403

DEBUG = False
SECRET_KEY = "ci-secret-key-not-for-production"
ALLOWED_HOSTS = ["testserver", "localhost", "127.0.0.1"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
        "ATOMIC_REQUESTS": True,
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATION = True

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "ci-cache",
    }
}

# Sem manifest: os testes não rodam collectstatic
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Gateways nunca são chamados de verdade nos testes (requests é mockado)
PAYMENTS_GATEWAY_BACKEND = "mercadopago"
MERCADOPAGO_ACCESS_TOKEN = "ci-mercadopago-token"
MERCADOPAGO_WEBHOOK_SECRET = "ci-mercadopago-secret"
INFINITEPAY_API_KEY = "ci-infinitepay-key"
INFINITEPAY_WEBHOOK_SECRET = "ci-infinitepay-secret"
PAYMENTS_WATCH_POLL_SECONDS = 0.01
