import structlog
from celery import Celery

from scriib.db_log_handler import attach_db_log_handler
from scriib.logging_setup import configure_structured_logging
from scriib.settings import settings

### Logging setup ###

SERVICE_NAME = "worker"

configure_structured_logging(SERVICE_NAME)

if settings.db_log_enabled:
    attach_db_log_handler(settings.db_log_level)

log = structlog.get_logger(__name__)
log.info("worker_startup", service=SERVICE_NAME)

###

celery = Celery(
    "scriib_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["scriib.worker.tasks"],
)

celery.conf.update(
    task_routes={
        "tasks.process_scheduled_posts": {"queue": "publishing"},
        "tasks.execute_campaigns": {"queue": "outreach"},
        "tasks.check_replies": {"queue": "outreach"},
        "tasks.enrich_contact": {"queue": "scrape"},
        "tasks.discover_viral_posts": {"queue": "scrape"},
        "tasks.viral_posts_daily": {"queue": "scrape"},
    },
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

celery.conf.update(
    task_default_queue="celery",
    task_track_started=True,
    timezone="UTC",
)
