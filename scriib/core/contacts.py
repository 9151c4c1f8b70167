"""
CRM contact store: contacts, notes and the per-contact activity timeline.

Contacts belong to exactly one user. Enrichment results (job title, company)
are applied here but fetched by agents/crm/enrichment.py in the worker.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scriib.core.errors import Conflict, NotFound, ValidationError
from scriib.db_models import Contact, ContactActivity, ContactNote, EnrichmentStatus, utcnow

log = structlog.get_logger(__name__)

UPDATABLE_FIELDS = ("name", "subtitle", "job_title", "company", "email", "profile_url", "engagement_type", "post_url")
ENGAGEMENT_TYPES = ("like", "comment", "manual", "import")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def get_contact(db: Session, contact_id: int, user_id: uuid.UUID) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id, Contact.user_id == user_id).first()
    if not contact:
        raise NotFound("Contact not found")
    return contact


def list_contacts(
    db: Session,
    user_id: uuid.UUID,
    search: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Contact]:
    q = db.query(Contact).filter(Contact.user_id == user_id)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(Contact.name.ilike(like) | Contact.company.ilike(like) | Contact.job_title.ilike(like))
    return q.order_by(Contact.created_at.desc()).offset(max(offset, 0)).limit(min(max(limit, 1), 500)).all()


def create_contact(db: Session, user_id: uuid.UUID, name: str, **fields) -> Contact:
    name = _blank_to_none(name)
    if not name:
        raise ValidationError("Contact name is required")

    engagement_type = fields.get("engagement_type") or "manual"
    if engagement_type not in ENGAGEMENT_TYPES:
        raise ValidationError(f"engagement_type must be one of: {', '.join(ENGAGEMENT_TYPES)}")

    contact = Contact(user_id=user_id, name=name, engagement_type=engagement_type)
    for key in UPDATABLE_FIELDS:
        if key not in ("name", "engagement_type") and key in fields:
            setattr(contact, key, _blank_to_none(fields[key]))

    db.add(contact)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A contact with this profile URL already exists")
    db.refresh(contact)

    log.info("contact_created", contact_id=contact.id, user_id=str(user_id))
    return contact


def update_contact(db: Session, contact_id: int, user_id: uuid.UUID, **fields) -> Contact:
    contact = get_contact(db, contact_id, user_id)

    changes = {k: _blank_to_none(v) for k, v in fields.items() if k in UPDATABLE_FIELDS}
    if not changes:
        raise ValidationError("No valid fields to update")
    if "name" in changes and not changes["name"]:
        raise ValidationError("Contact name is required")
    if "engagement_type" in changes:
        if changes["engagement_type"] not in ENGAGEMENT_TYPES:
            raise ValidationError(f"engagement_type must be one of: {', '.join(ENGAGEMENT_TYPES)}")

    for key, value in changes.items():
        setattr(contact, key, value)
    contact.updated_at = utcnow()

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A contact with this profile URL already exists")
    db.refresh(contact)
    return contact


def delete_contact(db: Session, contact_id: int, user_id: uuid.UUID) -> None:
    contact = get_contact(db, contact_id, user_id)
    db.delete(contact)
    db.commit()
    log.info("contact_deleted", contact_id=contact_id)


def delete_all_contacts(db: Session, user_id: uuid.UUID) -> int:
    contacts = db.query(Contact).filter(Contact.user_id == user_id).all()
    for contact in contacts:
        db.delete(contact)
    db.commit()
    log.info("contacts_deleted_all", user_id=str(user_id), count=len(contacts))
    return len(contacts)


### Timeline

def add_activity(
    db: Session,
    contact: Contact,
    activity_type: str,
    description: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ContactActivity:
    activity = ContactActivity(
        contact_id=contact.id,
        user_id=contact.user_id,
        activity_type=activity_type,
        description=description,
        details=details or {},
    )
    db.add(activity)
    return activity


def create_activity(db: Session, contact_id: int, user_id: uuid.UUID, activity_type: str, description: Optional[str] = None) -> ContactActivity:
    if not activity_type:
        raise ValidationError("activity_type is required")
    contact = get_contact(db, contact_id, user_id)
    activity = add_activity(db, contact, activity_type, description)
    db.commit()
    db.refresh(activity)
    return activity


def list_activities(db: Session, contact_id: int, user_id: uuid.UUID) -> List[ContactActivity]:
    contact = get_contact(db, contact_id, user_id)
    return (
        db.query(ContactActivity)
        .filter(ContactActivity.contact_id == contact.id)
        .order_by(ContactActivity.created_at.desc(), ContactActivity.id.desc())
        .all()
    )


### Notes

def add_note(db: Session, contact_id: int, user_id: uuid.UUID, body: str) -> ContactNote:
    body = _blank_to_none(body)
    if not body:
        raise ValidationError("Note content is required")

    contact = get_contact(db, contact_id, user_id)
    note = ContactNote(contact_id=contact.id, user_id=user_id, body=body)
    db.add(note)
    add_activity(db, contact, "note_added", "Added a note", {"note_preview": body[:100]})
    db.commit()
    db.refresh(note)
    return note


def list_notes(db: Session, contact_id: int, user_id: uuid.UUID) -> List[ContactNote]:
    contact = get_contact(db, contact_id, user_id)
    return db.query(ContactNote).filter(ContactNote.contact_id == contact.id).order_by(ContactNote.created_at.desc()).all()


def _own_note(db: Session, note_id: int, user_id: uuid.UUID) -> ContactNote:
    note = db.query(ContactNote).filter(ContactNote.id == note_id, ContactNote.user_id == user_id).first()
    if not note:
        raise NotFound("Note not found")
    return note


def update_note(db: Session, note_id: int, user_id: uuid.UUID, body: str) -> ContactNote:
    body = _blank_to_none(body)
    if not body:
        raise ValidationError("Note content is required")
    note = _own_note(db, note_id, user_id)
    note.body = body
    note.updated_at = utcnow()
    db.commit()
    db.refresh(note)
    return note


def delete_note(db: Session, note_id: int, user_id: uuid.UUID) -> None:
    note = _own_note(db, note_id, user_id)
    db.delete(note)
    db.commit()


### Enrichment results

def mark_enrichment_pending(db: Session, contact_id: int, user_id: uuid.UUID) -> Contact:
    contact = get_contact(db, contact_id, user_id)
    if not contact.profile_url:
        raise ValidationError("Contact has no LinkedIn profile URL")
    contact.enrichment_status = EnrichmentStatus.pending
    db.commit()
    db.refresh(contact)
    return contact


def apply_enrichment(db: Session, contact: Contact, job_title: Optional[str], company: Optional[str]) -> Contact:
    """Overwrite title/company with scraped values; empty scrape results leave fields alone."""
    if job_title:
        contact.job_title = job_title
    if company:
        contact.company = company
    contact.enrichment_status = EnrichmentStatus.enriched
    contact.enriched_at = utcnow()
    contact.updated_at = contact.enriched_at
    add_activity(
        db,
        contact,
        "contact_enriched",
        "Profile enriched from LinkedIn",
        {"job_title": job_title, "company": company},
    )
    return contact
