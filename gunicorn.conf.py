"""Gunicorn settings for the billing webhook service.

Usage:
    gunicorn -c gunicorn.conf.py saaskit.main:app
"""
from __future__ import annotations

import multiprocessing
import os


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8001")
worker_class = "uvicorn.workers.UvicornWorker"
workers = _env_int("GUNICORN_WORKERS", multiprocessing.cpu_count() + 1)
worker_tmp_dir = "/dev/shm"

# Webhook handlers call the Stripe API inline.
timeout = _env_int("GUNICORN_TIMEOUT", 60)
graceful_timeout = _env_int("GUNICORN_GRACEFUL_TIMEOUT", 30)
keepalive = _env_int("GUNICORN_KEEPALIVE", 5)

max_requests = _env_int("GUNICORN_MAX_REQUESTS", 1000)
max_requests_jitter = _env_int("GUNICORN_MAX_REQUESTS_JITTER", 50)

preload_app = os.getenv("GUNICORN_PRELOAD", "false").lower() == "true"
forwarded_allow_ips = os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1")

# Application logs are JSON on stderr (saaskit.logging); access lines go to stdout.
accesslog = os.getenv("GUNICORN_ACCESSLOG", "-")
errorlog = os.getenv("GUNICORN_ERRORLOG", "-")
loglevel = os.getenv("GUNICORN_LOGLEVEL", "info")

proc_name = "saaskit"
