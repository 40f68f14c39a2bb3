# gunicorn.conf.py
import copy
import multiprocessing
import os

from ECA.app_logger import JSON_LOGGING
from ECA.core.config import settings

# the factory builds a fresh app (and engine) inside each worker
wsgi_app = "ECA.main:create_app()"
worker_class = "uvicorn.workers.UvicornWorker"

bind = f"{os.getenv('HOST', '0.0.0.0')}:{os.getenv('PORT', '8000')}"
# low-volume back office: cap the pool at 4 unless WEB_CONCURRENCY says otherwise
workers = int(os.getenv("WEB_CONCURRENCY", min(multiprocessing.cpu_count() * 2 + 1, 4)))
worker_tmp_dir = "/dev/shm"

timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))

# recycle workers now and then
max_requests = int(os.getenv("GUNICORN_MAX_REQUESTS", "1000"))
max_requests_jitter = int(os.getenv("GUNICORN_MAX_REQUESTS_JITTER", "100"))

accesslog = "-"
errorlog = "-"
loglevel = settings.ECA_LOG_LEVEL.lower()
capture_output = True

# master and workers log through the app's JSON formatter
logconfig_dict = copy.deepcopy(JSON_LOGGING)
logconfig_dict["loggers"]["gunicorn.error"] = {"handlers": ["console"], "level": "INFO", "propagate": False}
logconfig_dict["loggers"]["gunicorn.access"] = {"handlers": ["console"], "level": "INFO", "propagate": False}
