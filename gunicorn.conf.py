# gunicorn.conf.py
import os

# Worker configuration
# Post uploads finish on background threads, so workers must be threaded.
workers = int(os.getenv("GUNICORN_WORKERS", 2))
worker_class = "gthread"
threads = int(os.getenv("GUNICORN_THREADS", 4))
timeout = int(os.getenv("GUNICORN_TIMEOUT", 300))
graceful_timeout = 60
keepalive = 5
max_requests = int(os.getenv("GUNICORN_MAX_REQUESTS", 1000))
max_requests_jitter = 100

# Large video uploads
limit_request_field_size = 16380

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(M)sms'

# Process naming
proc_name = "lockerroom-api"

# Bind address (PORT is set by most PaaS hosts)
bind = os.getenv("GUNICORN_BIND", f"0.0.0.0:{os.getenv('PORT', '8000')}")

# Behind a TLS-terminating proxy
forwarded_allow_ips = "*"
