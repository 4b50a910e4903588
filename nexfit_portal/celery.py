import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "nexfit_portal.settings.dev")

app = Celery("nexfit_portal")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
