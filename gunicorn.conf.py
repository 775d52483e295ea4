import os

# gunicorn -c gunicorn.conf.py app.main:app
bind = f"0.0.0.0:{os.getenv('PORT', 8000)}"
# Subscriptions and the per-event numbering lock live in process memory;
# scale out with more instances behind a sticky load balancer, not workers.
workers = int(os.getenv('WEB_CONCURRENCY', 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
# Long-lived queue sockets; don't recycle workers under them too eagerly
max_requests = int(os.getenv('GUNICORN_MAX_REQUESTS', 5000))
max_requests_jitter = 500
graceful_timeout = 30
keepalive = 5
loglevel = os.getenv('LOG_LEVEL', 'info').lower()
accesslog = "-"
preload_app = True
