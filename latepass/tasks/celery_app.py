import ssl

from celery import Celery
from latepass.core.config import settings

celery = Celery(
    "latepass",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["latepass.tasks.jobs"],
)

celery.conf.timezone = settings.CELERY_TIMEZONE
celery.conf.broker_connection_retry_on_startup = True

# Managed Redis (rediss://) needs explicit TLS options.
if settings.REDIS_URL.lower().startswith("rediss://"):
    celery.conf.broker_use_ssl = {"ssl_cert_reqs": ssl.CERT_NONE}
    celery.conf.redis_backend_use_ssl = {"ssl_cert_reqs": ssl.CERT_NONE}

# The sweep only keeps listings fresh; scans and reads expire tickets on their own.
celery.conf.beat_schedule = {
    "expire-late-pass-tickets": {
        "task": "latepass.tasks.jobs.expire_late_pass_tickets",
        "schedule": settings.SWEEP_INTERVAL_SECONDS,
        "options": {"expires": settings.SWEEP_INTERVAL_SECONDS},
    },
}
