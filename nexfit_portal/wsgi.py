"""WSGI entrypoint (gunicorn nexfit_portal.wsgi:application -c gunicorn.conf.py)."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "nexfit_portal.settings.prod")

application = get_wsgi_application()
