"""Gunicorn configuration for the session service.

Session state lives in process memory, so the service runs a single
worker: every request for a session must reach the process that owns it.
"""

import os

# Bind configuration
port = os.environ.get("PORT", "8080")
bind = f"0.0.0.0:{port}"

# One worker process; concurrency comes from the event loop
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"

# SSE streams stay open for the whole session; keep the worker timeout
# above the heartbeat interval
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "120"))
graceful_timeout = int(os.environ.get("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.environ.get("GUNICORN_KEEPALIVE", "5"))

# Logging to stdout/stderr
loglevel = os.environ.get("GUNICORN_LOG_LEVEL", "info")
accesslog = "-"
errorlog = "-"

backlog = 2048

# No max_requests: recycling the worker would drop every live session
