"""
Configuração do Gunicorn para o portal Nexfit.

Para usar: gunicorn nexfit_portal.wsgi:application -c gunicorn.conf.py
Os webhooks dos gateways fazem uma chamada de rede (Mercado Pago busca o
pagamento), por isso o timeout fica acima do timeout do requests (20s).
"""

import os

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", 2))
worker_class = "sync"
threads = int(os.environ.get("GUNICORN_THREADS", 1))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", 30))

# %(D)s = tempo de resposta em microsegundos
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s - - %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

capture_output = True
