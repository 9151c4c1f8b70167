"""
Ghostwriter -> approver links.

One row per (ghostwriter, approver) pair. Links are never hard-deleted:
revoking flips active off and stamps revoked_at, and re-creating a revoked
link reactivates the same row.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from scriib.core.errors import Conflict, NotFound, PermissionDenied, ValidationError
from scriib.db_models import GhostwriterApproverLink, utcnow

log = structlog.get_logger(__name__)


def create_link(db: Session, ghostwriter_id: Optional[uuid.UUID], approver_id: Optional[uuid.UUID]) -> GhostwriterApproverLink:
    if not ghostwriter_id or not approver_id:
        raise ValidationError("Both ghostwriter_id and approver_id are required")
    if ghostwriter_id == approver_id:
        raise ValidationError("Ghostwriter and approver cannot be the same user")

    link = (
        db.query(GhostwriterApproverLink)
        .filter(
            GhostwriterApproverLink.ghostwriter_id == ghostwriter_id,
            GhostwriterApproverLink.approver_id == approver_id,
        )
        .first()
    )

    if link and link.active:
        raise Conflict("This relationship already exists")

    if link:
        link.active = True
        link.revoked_at = None
        db.commit()
        db.refresh(link)
        log.info("relationship_reactivated", link_id=link.id)
        return link

    link = GhostwriterApproverLink(ghostwriter_id=ghostwriter_id, approver_id=approver_id, active=True)
    db.add(link)
    db.commit()
    db.refresh(link)
    log.info("relationship_created", link_id=link.id)
    return link


def revoke_link(db: Session, link_id: int) -> GhostwriterApproverLink:
    link = db.query(GhostwriterApproverLink).filter(GhostwriterApproverLink.id == link_id).first()
    if not link:
        raise NotFound("Relationship not found")

    if link.active:
        link.active = False
        link.revoked_at = utcnow()
        db.commit()
        db.refresh(link)
        log.info("relationship_revoked", link_id=link.id)
    return link


def list_links(db: Session, user_id: Optional[uuid.UUID] = None, role: Optional[str] = None) -> List[GhostwriterApproverLink]:
    q = db.query(GhostwriterApproverLink).filter(GhostwriterApproverLink.active.is_(True))

    if user_id is not None:
        if role == "ghostwriter":
            q = q.filter(GhostwriterApproverLink.ghostwriter_id == user_id)
        elif role == "approver":
            q = q.filter(GhostwriterApproverLink.approver_id == user_id)
        elif role is None:
            q = q.filter(
                or_(GhostwriterApproverLink.ghostwriter_id == user_id, GhostwriterApproverLink.approver_id == user_id)
            )
        else:
            raise ValidationError("role must be 'ghostwriter' or 'approver'")

    return q.order_by(GhostwriterApproverLink.created_at.desc()).all()


def has_active_link(db: Session, ghostwriter_id: uuid.UUID, approver_id: uuid.UUID) -> bool:
    return (
        db.query(GhostwriterApproverLink.id)
        .filter(
            GhostwriterApproverLink.ghostwriter_id == ghostwriter_id,
            GhostwriterApproverLink.approver_id == approver_id,
            GhostwriterApproverLink.active.is_(True),
        )
        .first()
        is not None
    )


def require_assignable(db: Session, ghostwriter_id: Optional[uuid.UUID], approver_id: Optional[uuid.UUID]) -> None:
    """A post may pair a ghostwriter with an approver only through an active link."""
    if not ghostwriter_id or not approver_id:
        return
    if ghostwriter_id == approver_id:
        raise ValidationError("Ghostwriter and approver cannot be the same user")
    if not has_active_link(db, ghostwriter_id, approver_id):
        raise PermissionDenied("Ghostwriter is not linked to this approver")
