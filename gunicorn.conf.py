import os

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:3001")
worker_class = "uvicorn.workers.UvicornWorker"
# Single writer: every change rewrites the whole metadata document
workers = int(os.getenv("GUNICORN_WORKERS", "1"))
timeout = int(os.getenv("GUNICORN_TIMEOUT", "120"))
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
accesslog = "-"
errorlog = "-"
forwarded_allow_ips = "*"

# Structured logging passthrough
capture_output = True


def on_starting(server):
    if workers > 1:
        server.log.warning("Running %s workers against a single metadata document; writes can be lost", workers)


def on_exit(server):
    server.log.info("Gunicorn master shutting down")
