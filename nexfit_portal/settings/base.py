"""Base Django settings shared across all environments."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import environ
from celery.schedules import crontab

# --------------------------------------------------------------------------------------
# Paths & environment
# --------------------------------------------------------------------------------------

BASE_DIR = Path(__file__).resolve().parent.parent.parent
APPS_DIR = BASE_DIR / "nexfit_portal"
LOG_DIR = BASE_DIR / "logs"

env = environ.Env(
    DJANGO_DEBUG=(bool, False),
    DJANGO_ALLOWED_HOSTS=(list, []),
)

ENV_FILE = BASE_DIR / ".env"
if ENV_FILE.exists():
    environ.Env.read_env(str(ENV_FILE))

# --------------------------------------------------------------------------------------
# Core settings
# --------------------------------------------------------------------------------------

SECRET_KEY = env("DJANGO_SECRET_KEY", default="django-insecure-change-me")
DEBUG = env.bool("DJANGO_DEBUG", default=False)
ALLOWED_HOSTS = env.list("DJANGO_ALLOWED_HOSTS", default=[])

# --------------------------------------------------------------------------------------
# Applications & middleware
# --------------------------------------------------------------------------------------

DJANGO_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]

THIRD_PARTY_APPS: list[str] = []

LOCAL_APPS: list[str] = [
    "accounts",
    "marketplace",
    "professionals",
    "payments",
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "nexfit_portal.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "nexfit_portal.wsgi.application"

# --------------------------------------------------------------------------------------
# Database
# --------------------------------------------------------------------------------------

DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}
DATABASES["default"]["ATOMIC_REQUESTS"] = True

# --------------------------------------------------------------------------------------
# Passwords & authentication
# --------------------------------------------------------------------------------------

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]

# --------------------------------------------------------------------------------------
# Internationalisation
# --------------------------------------------------------------------------------------

LANGUAGE_CODE = env("DJANGO_LANGUAGE_CODE", default="pt-br")
TIME_ZONE = env("DJANGO_TIME_ZONE", default="America/Sao_Paulo")
USE_I18N = True
USE_TZ = True

# --------------------------------------------------------------------------------------
# Static files
# --------------------------------------------------------------------------------------

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# --------------------------------------------------------------------------------------
# Misc
# --------------------------------------------------------------------------------------
AUTH_USER_MODEL = "accounts.User"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CSRF_TRUSTED_ORIGINS = env.list("DJANGO_CSRF_TRUSTED_ORIGINS", default=[])
SECURE_PROXY_SSL_HEADER = env.tuple(
    "DJANGO_SECURE_PROXY_SSL_HEADER", default=None
) or None

# --------------------------------------------------------------------------------------
# Payments
# --------------------------------------------------------------------------------------

# PIX manual (payload gerado localmente)
PAYMENTS_PIX_KEY = env("PAYMENTS_PIX_KEY", default="admin@nexfit.com")
PAYMENTS_PIX_RECEIVER_NAME = env("PAYMENTS_PIX_RECEIVER_NAME", default="NEXFIT TECNOLOGIA")
PAYMENTS_PIX_RECEIVER_CITY = env("PAYMENTS_PIX_RECEIVER_CITY", default="SAO PAULO")

PAYMENTS_INTENT_TTL_HOURS = env.int("PAYMENTS_INTENT_TTL_HOURS", default=24)
PAYMENTS_PLATFORM_FEE_RATE = Decimal(env("PAYMENTS_PLATFORM_FEE_RATE", default="0.15"))
PAYMENTS_PLAN_DURATION_DAYS = env.int("PAYMENTS_PLAN_DURATION_DAYS", default=30)
PAYMENTS_DEFAULT_SUBSCRIPTION_PLAN = env("PAYMENTS_DEFAULT_SUBSCRIPTION_PLAN", default="ADVANCE")
PAYMENTS_STORE_PREMIUM_PLAN = env("PAYMENTS_STORE_PREMIUM_PLAN", default="PRO")
PAYMENTS_WATCH_POLL_SECONDS = env.float("PAYMENTS_WATCH_POLL_SECONDS", default=3.0)

# "mercadopago" ou "infinitepay"
PAYMENTS_GATEWAY_BACKEND = env("PAYMENTS_GATEWAY_BACKEND", default="mercadopago")

MERCADOPAGO_ACCESS_TOKEN = env("MERCADOPAGO_ACCESS_TOKEN", default="")
MERCADOPAGO_WEBHOOK_SECRET = env("MERCADOPAGO_WEBHOOK_SECRET", default="")
MERCADOPAGO_WEBHOOK_URL = env("MERCADOPAGO_WEBHOOK_URL", default="")
MERCADOPAGO_BACK_URL = env("MERCADOPAGO_BACK_URL", default="")
MERCADOPAGO_CURRENCY = env("MERCADOPAGO_CURRENCY", default="BRL")

INFINITEPAY_API_KEY = env("INFINITEPAY_API_KEY", default="")
INFINITEPAY_API_URL = env("INFINITEPAY_API_URL", default="https://api.infinitepay.io/v2")
INFINITEPAY_WEBHOOK_SECRET = env("INFINITEPAY_WEBHOOK_SECRET", default="")
INFINITEPAY_WEBHOOK_URL = env("INFINITEPAY_WEBHOOK_URL", default="")

# --------------------------------------------------------------------------------------
# Logging
# --------------------------------------------------------------------------------------

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s [%(levelname)s] %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": env("DJANGO_LOG_LEVEL", default="INFO"),
    },
    "loggers": {
        "payments": {
            "handlers": ["console"],
            "level": env("PAYMENTS_LOG_LEVEL", default="INFO"),
            "propagate": False,
        }
    },
}

# Celery
CELERY_BROKER_URL = env("CELERY_BROKER_URL", default="redis://localhost:6379/0")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", default=CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = env.bool("CELERY_TASK_ALWAYS_EAGER", default=False)
CELERY_TIMEZONE = TIME_ZONE
CELERY_ENABLE_UTC = USE_TZ
CELERY_BEAT_SCHEDULE = {
    "payments-expire-stale-every-15min": {
        "task": "payments.tasks.expire_stale_payments",
        "schedule": crontab(minute="*/15"),
    },
}
