"""
Gunicorn Configuration

Uvicorn workers under Gunicorn. A sync pass runs inside the request that
triggered it, so the worker timeout must cover a full run.
"""

import os

from skupulse.config.settings import get_settings

_settings = get_settings()

# Server socket
bind = os.getenv("BIND", f"{_settings.api_host}:{_settings.api_port}")
backlog = 512

# Worker processes
workers = int(os.getenv("WORKERS", 2))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 5000
max_requests_jitter = 500
timeout = int(os.getenv("WORKER_TIMEOUT", 600))
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "skupulse-api"

# Logging
errorlog = "-"
loglevel = _settings.monitoring.log_level.lower()
accesslog = "-"
# Path only; the trigger secret may travel in the query string
access_log_format = '%(h)s "%(m)s %(U)s" %(s)s %(b)s %(D)s'
