import multiprocessing, os

wsgi_app = "cinegate:create_app()"

# Token issuance is short I/O-bound work; threads keep memory low
workers = int(os.environ.get('WEB_CONCURRENCY', (multiprocessing.cpu_count() * 2) + 1))
threads = int(os.environ.get('GUNICORN_THREADS', 4))
worker_class = "gthread"
preload_app = True
bind = ":" + os.environ.get('PORT', '8000')
# Render style proxy headers; ProxyFix in the app does the rest
forwarded_allow_ips = "*"
timeout = 30
keepalive = 75
# Logs to stdout/stderr
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get('LOG_LEVEL', 'info').lower()
