"""SMS nudges for approvers with posts waiting on them."""
from __future__ import annotations

from typing import Any, Dict, List

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from scriib.agents.notify.sms import SmsError, send_sms
from scriib.db_models import Post, PostStatus, Profile
from scriib.settings import settings

log = structlog.get_logger(__name__)


def reminder_text(count: int, name: str | None) -> str:
    noun = "post" if count == 1 else "posts"
    who = name or "there"
    return f"You have {count} {noun} pending approval, {who}. Review: {settings.site_url}/approval-portal"


def pending_by_approver(db: Session) -> List[tuple]:
    return (
        db.query(Post.approver_id, func.count(Post.id))
        .filter(
            Post.status == PostStatus.pending_approval,
            Post.archived.is_(False),
            Post.approver_id.isnot(None),
        )
        .group_by(Post.approver_id)
        .all()
    )


def send_approval_reminders(db: Session, dry_run: bool = False, client=None) -> Dict[str, Any]:
    results = []
    sent = skipped = failed = 0

    for approver_id, count in pending_by_approver(db):
        profile = db.query(Profile).filter(Profile.user_id == approver_id).first()
        if not profile or not profile.sms_opt_in or not profile.phone_number:
            skipped += 1
            continue

        first_name = (profile.full_name or "").split()[0] if profile.full_name else None
        body = reminder_text(count, first_name)
        entry = {"approver_id": str(approver_id), "pending": count, "message": body}

        if dry_run:
            entry["status"] = "dry_run"
        else:
            try:
                entry["sid"] = send_sms(profile.phone_number, body, client=client)
                entry["status"] = "sent"
                sent += 1
            except SmsError as e:
                entry["status"] = "error"
                entry["error"] = str(e)
                failed += 1
                log.warning("approval_reminder_failed", approver_id=str(approver_id), error=str(e))
        results.append(entry)

    log.info("approval_reminders_done", sent=sent, skipped=skipped, failed=failed, dry_run=dry_run)
    return {"sent": sent, "skipped": skipped, "failed": failed, "dry_run": dry_run, "results": results}
