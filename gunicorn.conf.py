"""
Production Server Configuration

Run FastAPI with Uvicorn workers under Gunicorn for production deployment.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", f"0.0.0.0:{os.getenv('PORT', '3000')}")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 10000
max_requests_jitter = 1000
timeout = 60
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "product-catalog-api"

# Server mechanics
daemon = False
pidfile = "/tmp/gunicorn.pid"

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = "-"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'


def when_ready(server):
    """Called when server is ready to receive connections."""
    server.log.info("Product catalog API ready on %s", bind)
