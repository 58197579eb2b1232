"""Gunicorn configuration for production deployment.

Reads the same environment variables as core/config.py.

Usage:
    gunicorn main:app -c gunicorn.conf.py
"""
import os
import multiprocessing

host = os.getenv("HOST", "0.0.0.0")
port = os.getenv("PORT", "3010")
workers_env = os.getenv("WORKERS", "0")  # 0 = auto-calculate
log_level = os.getenv("LOG_LEVEL", "INFO").lower()
debug = os.getenv("DEBUG", "false").lower() == "true"
redis_enabled = os.getenv("REDIS_ENABLED", "false").lower() == "true"

bind = f"{host}:{port}"

# WORKERS=0 means auto (2 * cpu + 1), WORKERS=N means use N.
# Without Redis each worker holds its own in-memory cache, so auto mode
# stays at a single worker to keep cache hit rates meaningful.
workers_count = int(workers_env)
if workers_count > 0:
    workers = workers_count
elif redis_enabled:
    workers = multiprocessing.cpu_count() * 2 + 1
else:
    workers = 1
worker_class = "uvicorn.workers.UvicornWorker"

# Firestore queries are bounded by the optimizer; requests should not linger
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))

max_requests = int(os.getenv("GUNICORN_MAX_REQUESTS", "10000"))
max_requests_jitter = int(os.getenv("GUNICORN_MAX_REQUESTS_JITTER", "1000"))

accesslog = "-" if not debug else None
errorlog = "-"
loglevel = log_level

proc_name = "mussikon-query-service"

# Lifespan startup runs per worker, so preloading only shares imports
preload_app = not debug
