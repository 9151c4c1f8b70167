"""
Identity bridge.

The identity provider knows users by an opaque subject string; every business
table keys on the internal UUID. The mapping row is created once on first
sign-in and only removed when the account itself is deleted.
"""
from __future__ import annotations

import uuid
from typing import Optional, Tuple

import structlog
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scriib.core.errors import NotFound, ValidationError
from scriib.db_models import GhostwriterApproverLink, Post, Profile, UserMapping
from scriib.settings import settings

log = structlog.get_logger(__name__)


def resolve_user_id(db: Session, external_id: str) -> Optional[uuid.UUID]:
    if not external_id:
        return None
    row = db.query(UserMapping.user_id).filter(UserMapping.external_id == external_id).first()
    return row[0] if row else None


def create_mapping(
    db: Session,
    external_id: str,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
) -> Tuple[UserMapping, bool]:
    """
    Idempotent: returns (mapping, already_existed).
    A new mapping also creates the user's profile.
    """
    if not external_id:
        raise ValidationError("external_id is required")

    existing = db.query(UserMapping).filter(UserMapping.external_id == external_id).first()
    if existing:
        return existing, True

    profile = Profile(
        user_id=uuid.uuid4(),
        email=email,
        full_name=full_name,
        is_admin=bool(email and email.lower() in settings.admin_email_set),
    )
    db.add(profile)
    db.flush()

    mapping = UserMapping(external_id=external_id, user_id=profile.user_id)
    db.add(mapping)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent first sign-in for the same subject won the insert
        db.rollback()
        existing = db.query(UserMapping).filter(UserMapping.external_id == external_id).first()
        if existing is None:
            raise
        log.info("user_mapping_race_lost", user_id=str(existing.user_id))
        return existing, True
    db.refresh(mapping)

    log.info("user_mapping_created", user_id=str(profile.user_id), is_admin=profile.is_admin)
    return mapping, False


def get_profile(db: Session, user_id: uuid.UUID) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if not profile:
        raise NotFound("Profile not found")
    return profile


def update_profile(db: Session, user_id: uuid.UUID, **fields) -> Profile:
    profile = get_profile(db, user_id)
    for key in ("full_name", "phone_number", "sms_opt_in"):
        if key in fields and fields[key] is not None:
            setattr(profile, key, fields[key])
    db.commit()
    db.refresh(profile)
    return profile


def delete_account(db: Session, external_id: str) -> uuid.UUID:
    """Remove mapping + profile; owned rows go with the profile cascade."""
    mapping = db.query(UserMapping).filter(UserMapping.external_id == external_id).first()
    if not mapping:
        raise NotFound("User mapping not found")

    user_id = mapping.user_id

    # posts owned by others keep existing, they just lose this reviewer/writer
    db.execute(update(Post).where(Post.approver_id == user_id).values(approver_id=None))
    db.execute(update(Post).where(Post.ghostwriter_id == user_id).values(ghostwriter_id=None))
    db.query(GhostwriterApproverLink).filter(
        or_(GhostwriterApproverLink.ghostwriter_id == user_id, GhostwriterApproverLink.approver_id == user_id)
    ).delete(synchronize_session=False)

    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if profile:
        db.delete(profile)
    else:
        db.delete(mapping)
    db.commit()

    log.info("user_account_deleted", user_id=str(user_id))
    return user_id
