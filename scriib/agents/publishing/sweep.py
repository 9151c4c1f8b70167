"""
Scheduled-publish sweep.

Externally triggered (cron route / beat). Each due post is first claimed with a
conditional UPDATE scheduled -> publishing, so overlapping sweeps never publish
the same post twice. A claimed post ends the pass as published or failed;
failures are not retried until someone re-schedules the post. A claim that never
records an outcome (worker killed mid-publish) is released as failed by a later
sweep once it is older than PUBLISH_CLAIM_TIMEOUT_MINUTES.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import structlog
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from scriib.agents.publishing import linkedin, twitter
from scriib.core.errors import IntegrationError
from scriib.core.posts import to_utc_naive
from scriib.db_models import Platform, Post, PostStatus, SocialAccount, utcnow
from scriib.settings import settings

log = structlog.get_logger(__name__)

Publisher = Callable[[str, SocialAccount, List[str]], Dict[str, Any]]

DEFAULT_PUBLISHERS: Dict[str, Publisher] = {
    Platform.linkedin.value: linkedin.publish,
    Platform.twitter.value: twitter.publish,
}


class PublishError(IntegrationError):
    service = "publish"


def due_post_ids(db: Session, now: datetime) -> List[int]:
    rows = (
        db.query(Post.id)
        .filter(
            Post.status == PostStatus.scheduled,
            Post.scheduled_time.isnot(None),
            Post.scheduled_time <= now,
            Post.archived.is_(False),
        )
        .order_by(Post.scheduled_time.asc())
        .all()
    )
    return [r[0] for r in rows]


def claim_post(db: Session, post_id: int, now: Optional[datetime] = None) -> bool:
    result = db.execute(
        update(Post)
        .where(Post.id == post_id, Post.status == PostStatus.scheduled)
        .values(status=PostStatus.publishing, claimed_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


STALE_CLAIM_ERROR = "Publishing did not finish; reschedule to retry"


def release_stale_claims(db: Session, now: datetime, timeout_minutes: Optional[int] = None) -> int:
    """Fail posts whose claiming sweep died before recording an outcome."""
    minutes = settings.publish_claim_timeout_minutes if timeout_minutes is None else timeout_minutes
    cutoff = now - timedelta(minutes=minutes)
    result = db.execute(
        update(Post)
        .where(
            Post.status == PostStatus.publishing,
            or_(Post.claimed_at.is_(None), Post.claimed_at <= cutoff),
        )
        .values(status=PostStatus.failed, error_message=STALE_CLAIM_ERROR, claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount:
        log.warning("sweep_stale_claims_released", count=result.rowcount, cutoff=cutoff.isoformat())
    return result.rowcount


def _record_failure(db: Session, post_id: int, error: Exception) -> None:
    db.rollback()
    post = db.query(Post).filter(Post.id == post_id).first()
    post.status = PostStatus.failed
    post.error_message = str(error)[:2000] or error.__class__.__name__
    post.claimed_at = None


def selected_platforms(post: Post) -> List[str]:
    return [name for name, enabled in (post.platforms or {}).items() if enabled]


def publish_to_platforms(db: Session, post: Post, publishers: Dict[str, Publisher]) -> List[Dict[str, Any]]:
    """All-or-nothing for this pass: the first failing platform aborts the post."""
    results = []
    for name in selected_platforms(post):
        publisher = publishers.get(name)
        if publisher is None:
            raise PublishError(f"Unsupported platform: {name}", kind="payload")

        account = (
            db.query(SocialAccount)
            .filter(SocialAccount.user_id == post.user_id, SocialAccount.platform == Platform(name))
            .first()
        )
        if not account:
            raise PublishError(f"No connected {name} account", kind="payload")

        results.append(publisher(post.content, account, list(post.media_urls or [])))
    return results


def run_sweep(
    db: Session,
    now: Optional[datetime] = None,
    publishers: Optional[Dict[str, Publisher]] = None,
) -> Dict[str, Any]:
    now = to_utc_naive(now) if now else utcnow()
    publishers = publishers if publishers is not None else DEFAULT_PUBLISHERS

    released = release_stale_claims(db, now)
    ids = due_post_ids(db, now)
    published = failed = skipped = 0

    for post_id in ids:
        if not claim_post(db, post_id, now):
            skipped += 1
            log.info("sweep_post_already_claimed", post_id=post_id)
            continue

        post = db.query(Post).filter(Post.id == post_id).first()
        try:
            results = publish_to_platforms(db, post, publishers)
        except IntegrationError as e:
            _record_failure(db, post_id, e)
            failed += 1
            log.warning("sweep_post_failed", post_id=post_id, error=str(e))
        except Exception as e:
            # unexpected adapter or database error: still release the claim as failed
            _record_failure(db, post_id, e)
            failed += 1
            log.exception("sweep_post_failed", post_id=post_id, error=str(e))
        else:
            post.status = PostStatus.published
            post.published_at = now
            post.error_message = None
            post.claimed_at = None
            published += 1
            log.info("sweep_post_published", post_id=post_id, platforms=[r.get("platform") for r in results])
        db.commit()

    summary = {
        "success": True,
        "processed": published + failed,
        "published": published,
        "failed": failed,
        "skipped": skipped,
        "released": released,
        "timestamp": now.isoformat(),
    }
    log.info("sweep_finished", **summary)
    return summary
