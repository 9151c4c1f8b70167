import time
from typing import Any, Callable, Dict

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

from scriib.agents.analytics.viral_posts import discover_viral_posts as run_viral_discovery
from scriib.agents.crm.enrichment import enrich_contact as run_enrichment
from scriib.agents.notify.reminders import send_approval_reminders as run_reminders
from scriib.agents.outreach import runner
from scriib.agents.publishing.sweep import run_sweep
from scriib.db import SessionLocal
from scriib.settings import settings
from scriib.worker.celery_app import celery

log = structlog.get_logger(__name__)


def _run_db_task(task, name: str, fn: Callable[..., Dict[str, Any]], **bind) -> Dict[str, Any]:
    """Shared task body: bind log context, own a session, commit or roll back, always close."""
    clear_contextvars()
    task_id = getattr(task.request, "id", None)
    bind_contextvars(service="worker", task=name, task_id=task_id, **bind)

    start = time.time()
    log.info("task_started")

    db = SessionLocal()
    try:
        result = fn(db)
        db.commit()
        log.info("task_finished", duration_ms=int((time.time() - start) * 1000), result_summary=result)
        return result
    except Exception as e:
        db.rollback()
        log.exception("task_failed", duration_ms=int((time.time() - start) * 1000), error=str(e))
        raise
    finally:
        db.close()


@celery.task(name="tasks.process_scheduled_posts", bind=True)
def process_scheduled_posts(self):
    return _run_db_task(self, "process_scheduled_posts", run_sweep)


@celery.task(name="tasks.execute_campaigns", bind=True)
def execute_campaigns(self):
    return _run_db_task(self, "execute_campaigns", runner.execute_campaigns)


@celery.task(name="tasks.check_replies", bind=True)
def check_replies(self):
    return _run_db_task(self, "check_replies", runner.check_replies)


@celery.task(name="tasks.send_approval_reminders", bind=True)
def send_approval_reminders(self, dry_run: bool = False):
    return _run_db_task(self, "send_approval_reminders", lambda db: run_reminders(db, dry_run=dry_run))


@celery.task(name="tasks.enrich_contact", bind=True)
def enrich_contact(self, contact_id: int):
    def _enrich(db):
        contact = run_enrichment(db, contact_id)
        return {"ok": True, "contact_id": contact.id, "job_title": contact.job_title, "company": contact.company}

    return _run_db_task(self, "enrich_contact", _enrich, contact_id=contact_id)


@celery.task(name="tasks.discover_viral_posts", bind=True)
def discover_viral_posts(self, keyword: str, total_posts: int = 50):
    def _discover(db):
        report = run_viral_discovery(db, keyword, total_posts=total_posts)
        return {"ok": True, "report_id": report.id, "post_sample": report.report.get("post_sample")}

    return _run_db_task(self, "discover_viral_posts", _discover, keyword=keyword)


@celery.task(name="tasks.viral_posts_daily")
def viral_posts_daily():
    keywords = [k.strip() for k in settings.viral_keywords.split(",") if k.strip()]
    for keyword in keywords:
        discover_viral_posts.delay(keyword)
    log.info("viral_posts_daily_queued", keywords=len(keywords))
    return {"ok": True, "queued": len(keywords)}
