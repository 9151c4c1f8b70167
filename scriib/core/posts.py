"""
Post lifecycle.

  draft -> pending_approval -> scheduled | rejected
  scheduled -> publishing (sweep claim) -> published | failed
  failed -> scheduled (human re-schedule)
  any non-terminal state -> archived -> (previous state) via unarchive

Every mutation is made by exactly one actor who must be the owner, approver or
ghostwriter on the post (see core/policy.py).
"""
from __future__ import annotations

import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from scriib.core import policy, relationships
from scriib.core.errors import NotFound, PermissionDenied, ValidationError
from scriib.db_models import Platform, Post, PostStatus, utcnow

log = structlog.get_logger(__name__)

TERMINAL = {PostStatus.published, PostStatus.publishing}
IMMUTABLE = {PostStatus.published, PostStatus.publishing, PostStatus.archived}
SCHEDULABLE_FROM = {PostStatus.draft, PostStatus.scheduled, PostStatus.failed}

DEFAULT_PLATFORMS = {Platform.linkedin.value: True}


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _clean_platforms(platforms: Optional[Dict[str, Any]]) -> Dict[str, bool]:
    if platforms is None:
        return dict(DEFAULT_PLATFORMS)
    known = {p.value for p in Platform}
    unknown = [name for name in platforms if name not in known]
    if unknown:
        raise ValidationError(f"Unsupported platform(s): {', '.join(sorted(unknown))}")
    return {name: bool(flag) for name, flag in platforms.items()}


def _touch(post: Post) -> None:
    post.edited_at = utcnow()


def get_post(db: Session, post_id: int) -> Post:
    post = db.query(Post).filter(Post.id == post_id).first()
    if not post:
        raise NotFound("Post not found")
    return post


def get_post_for(db: Session, post_id: int, user_id: uuid.UUID, action: str = "view") -> Post:
    post = get_post(db, post_id)
    policy.require_post_actor(post, user_id, action)
    return post


def create_post(
    db: Session,
    user_id: uuid.UUID,
    content: str,
    platforms: Optional[Dict[str, Any]] = None,
    approver_id: Optional[uuid.UUID] = None,
    ghostwriter_id: Optional[uuid.UUID] = None,
    scheduled_time: Optional[datetime] = None,
    media_urls: Optional[List[str]] = None,
) -> Post:
    if not content or not content.strip():
        raise ValidationError("Content is required")
    relationships.require_assignable(db, ghostwriter_id, approver_id)

    post = Post(
        user_id=user_id,
        content=content,
        platforms=_clean_platforms(platforms),
        approver_id=approver_id,
        ghostwriter_id=ghostwriter_id,
        scheduled_time=to_utc_naive(scheduled_time),
        media_urls=list(media_urls or []),
        status=PostStatus.draft,
    )
    db.add(post)
    db.commit()
    db.refresh(post)

    log.info("post_created", post_id=post.id, user_id=str(user_id))
    return post


def update_post(db: Session, post_id: int, actor_id: uuid.UUID, **fields) -> Post:
    """Edit content/platforms/media/approver/ghostwriter. The owner never changes.

    Only the owner reassigns the approver or ghostwriter.
    """
    post = get_post_for(db, post_id, actor_id, "edit")
    if post.status in IMMUTABLE:
        raise ValidationError(f"Cannot edit a post that is {post.status.value}")

    reassigning = {
        k: fields[k] for k in ("approver_id", "ghostwriter_id") if k in fields and fields[k] != getattr(post, k)
    }
    if reassigning:
        policy.require_post_actor(post, actor_id, "reassign", roles=(policy.OWNER,))
        relationships.require_assignable(
            db,
            reassigning.get("ghostwriter_id", post.ghostwriter_id),
            reassigning.get("approver_id", post.approver_id),
        )

    if "content" in fields and fields["content"] is not None:
        if not fields["content"].strip():
            raise ValidationError("Content is required")
        post.content = fields["content"]
    if "platforms" in fields and fields["platforms"] is not None:
        post.platforms = _clean_platforms(fields["platforms"])
    if "media_urls" in fields and fields["media_urls"] is not None:
        post.media_urls = list(fields["media_urls"])
    for key, value in reassigning.items():
        setattr(post, key, value)

    # an edited rejection goes back into the drafting loop
    if post.status == PostStatus.rejected:
        post.status = PostStatus.draft
        post.rejection_reason = None

    _touch(post)
    db.commit()
    db.refresh(post)
    log.info("post_updated", post_id=post.id, actor_id=str(actor_id))
    return post


def submit_for_approval(db: Session, post_id: int, actor_id: uuid.UUID) -> Post:
    post = get_post_for(db, post_id, actor_id, "submit")
    if post.status not in (PostStatus.draft, PostStatus.rejected):
        raise ValidationError(f"Cannot submit a post that is {post.status.value}")
    if not post.approver_id:
        raise ValidationError("Post has no approver assigned")
    relationships.require_assignable(db, post.ghostwriter_id, post.approver_id)

    post.status = PostStatus.pending_approval
    post.rejection_reason = None
    _touch(post)
    db.commit()
    db.refresh(post)
    log.info("post_submitted", post_id=post.id, approver_id=str(post.approver_id))
    return post


def _require_reviewer(post: Post, actor_id: uuid.UUID, action: str) -> None:
    # approval decisions belong to the approver; owner decides only when none is set
    role = policy.require_post_actor(post, actor_id, action)
    allowed = policy.APPROVER if post.approver_id else policy.OWNER
    if role != allowed:
        raise PermissionDenied(f"You do not have permission to {action} this post")


def approve_post(db: Session, post_id: int, actor_id: uuid.UUID, scheduled_time: Optional[datetime] = None) -> Post:
    post = get_post(db, post_id)
    _require_reviewer(post, actor_id, "approve")
    if post.status != PostStatus.pending_approval:
        raise ValidationError("Only posts pending approval can be approved")

    when = to_utc_naive(scheduled_time) or post.scheduled_time
    if when is None:
        raise ValidationError("scheduled_time is required to approve a post")

    post.status = PostStatus.scheduled
    post.scheduled_time = when
    post.error_message = None
    _touch(post)
    db.commit()
    db.refresh(post)
    log.info("post_approved", post_id=post.id, scheduled_time=when.isoformat())
    return post


def reject_post(db: Session, post_id: int, actor_id: uuid.UUID, reason: Optional[str] = None) -> Post:
    post = get_post(db, post_id)
    _require_reviewer(post, actor_id, "reject")
    if post.status != PostStatus.pending_approval:
        raise ValidationError("Only posts pending approval can be rejected")

    post.status = PostStatus.rejected
    post.rejection_reason = (reason or "").strip()[:500] or None
    _touch(post)
    db.commit()
    db.refresh(post)
    log.info("post_rejected", post_id=post.id)
    return post


def schedule_post(db: Session, post_id: int, actor_id: uuid.UUID, scheduled_time: datetime) -> Post:
    post = get_post_for(db, post_id, actor_id, "schedule")
    if post.approver_id:
        # only the approver puts a reviewed post on the calendar
        _require_reviewer(post, actor_id, "schedule")
    if scheduled_time is None:
        raise ValidationError("scheduled_time is required")
    if post.status not in SCHEDULABLE_FROM:
        raise ValidationError(f"Cannot schedule a post that is {post.status.value}")

    when = to_utc_naive(scheduled_time)
    if when <= utcnow():
        # past times are accepted and go out on the next sweep
        log.info("post_scheduled_in_past", post_id=post.id, scheduled_time=when.isoformat())

    post.status = PostStatus.scheduled
    post.scheduled_time = when
    post.error_message = None
    _touch(post)
    db.commit()
    db.refresh(post)
    log.info("post_scheduled", post_id=post.id, scheduled_time=when.isoformat())
    return post


def archive_post(db: Session, post_id: int, actor_id: uuid.UUID) -> Post:
    post = get_post_for(db, post_id, actor_id, "archive")
    if post.status in TERMINAL or post.status == PostStatus.archived:
        raise ValidationError(f"Cannot archive a post that is {post.status.value}")

    post.status_before_archive = post.status
    post.status = PostStatus.archived
    post.archived = True
    _touch(post)
    db.commit()
    db.refresh(post)
    log.info("post_archived", post_id=post.id)
    return post


def unarchive_post(db: Session, post_id: int, actor_id: uuid.UUID) -> Post:
    post = get_post_for(db, post_id, actor_id, "unarchive")
    if post.status != PostStatus.archived:
        raise ValidationError("Post is not archived")

    post.status = post.status_before_archive or PostStatus.draft
    post.status_before_archive = None
    post.archived = False
    _touch(post)
    db.commit()
    db.refresh(post)
    log.info("post_unarchived", post_id=post.id, status=post.status.value)
    return post


def delete_post(db: Session, post_id: int, actor_id: uuid.UUID) -> None:
    post = get_post(db, post_id)
    policy.require_post_actor(post, actor_id, "delete", roles=(policy.OWNER,))
    if post.status == PostStatus.publishing:
        raise ValidationError("Cannot delete a post while it is publishing")
    db.delete(post)
    db.commit()
    log.info("post_deleted", post_id=post_id)


def list_user_posts(
    db: Session,
    user_id: uuid.UUID,
    status: Optional[str] = None,
    include_archived: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    """Posts where the user is owner, approver or ghostwriter, each tagged with that role."""
    q = db.query(Post).filter(
        or_(Post.user_id == user_id, Post.approver_id == user_id, Post.ghostwriter_id == user_id)
    )
    if not include_archived:
        q = q.filter(Post.archived.is_(False))

    counts = Counter(p.status.value for p in q.all())

    if status:
        try:
            q = q.filter(Post.status == PostStatus(status))
        except ValueError:
            raise ValidationError(f"Unknown status: {status}")

    rows = (
        q.order_by(Post.scheduled_time.is_(None), Post.scheduled_time.asc(), Post.created_at.desc())
        .offset(max(offset, 0))
        .limit(min(max(limit, 1), 200))
        .all()
    )
    return {
        "posts": [(p, policy.post_role(p, user_id)) for p in rows],
        "status_counts": dict(counts),
    }
