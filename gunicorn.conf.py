# gunicorn.conf.py
# gunicorn -c gunicorn.conf.py birthmap.main:app
import multiprocessing, os

wsgi_app = "birthmap.main:app"
bind = f"0.0.0.0:{os.getenv('PORT','5000')}"
workers = int(os.getenv("WEB_CONCURRENCY", max(2, multiprocessing.cpu_count())))
threads = 1
worker_class = "sync"
timeout = 60
graceful_timeout = 30
keepalive = 2
preload_app = False  # each worker loads its own ephemeris kernel lazily
accesslog = "-"   # stdout
errorlog = "-"    # stderr
loglevel = os.getenv("LOGLEVEL", "info")

access_log_format = (
    '%(h)s - "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" '
    'req_id:%({X-Request-ID}i)s failed:%({X-Chart-Failures}o)s rt:%(L)s'
)
