# backend/gunicorn_conf.py

# Gunicorn config file
# Run with: gunicorn -c gunicorn_conf.py ledgerbot.main:app

# Basic configuration
bind = "0.0.0.0:8000"
# Sessions, queues and caches live in process memory, so a single worker
# must own every user. Scale by sharding users across instances instead.
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"
# Let in-flight turns drain before the worker exits
graceful_timeout = 30

# Settings for running behind a reverse proxy like Nginx
forwarded_allow_ips = "*"
proxy_protocol = True
proxy_allow_ips = '*'

# --- Logging ---
# Send access and error logs to stdout and stderr
accesslog = "-"
errorlog = "-"
# Set the log level
loglevel = "info"
