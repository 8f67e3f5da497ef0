# =============================================================================
# Natours - Gunicorn Production Configuration
#   gunicorn -c gunicorn.conf.py run:app
# =============================================================================
import os
import multiprocessing

bind = f"0.0.0.0:{os.environ.get('PORT', '3000')}"

# One thread per in-flight request
worker_class = "gthread"
workers = min(multiprocessing.cpu_count() * 2 + 1, 4)
threads = int(os.environ.get('GUNICORN_THREADS', 4))

preload_app = True

# SIGTERM: stop accepting connections and let in-flight requests finish
timeout = 60
graceful_timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")

max_requests = 1000
max_requests_jitter = 50

# Behind a proxy that terminates TLS (X-Forwarded-Proto decides the cookie's secure flag)
forwarded_allow_ips = "*"


def on_exit(server):
    server.log.info("Natours shut down")
