# backend/gunicorn_conf.py

# Gunicorn config file
# Run with: gunicorn -c gunicorn_conf.py taskflow.main:app

# Process contexts live in worker memory, so one worker keeps every session
# on the same store. Scale out with sticky sessions, not with workers.
bind = "0.0.0.0:8000"
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"

# Settings for running behind a reverse proxy like Nginx
forwarded_allow_ips = "*"
proxy_protocol = True
proxy_allow_ips = '*'

# --- Logging ---
# Send access and error logs to stdout and stderr
accesslog = "-"
errorlog = "-"
loglevel = "info"
