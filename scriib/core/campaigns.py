"""
Outreach campaign control.

Status machine (stopped is terminal):

  draft, paused --start--> active
  active        --pause--> paused
  active, paused --stop--> stopped

Transitions are single conditional UPDATEs on status so a concurrent change
between the guard checks and the write makes the transition fail instead of
clobbering the other writer. Every transition appends a campaign_activities row.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from scriib.core.errors import Conflict, NotFound, ValidationError
from scriib.db_models import (
    Campaign,
    CampaignActivity,
    CampaignContact,
    CampaignContactStatus,
    CampaignStatus,
    Contact,
    LinkedInOutreachAccount,
    utcnow,
)

log = structlog.get_logger(__name__)

ACTIONS = ("start", "pause", "stop")

EDITABLE_FIELDS = (
    "name",
    "description",
    "connection_message",
    "follow_up_message",
    "follow_up_delay_days",
    "daily_connection_limit",
    "use_ai_personalization",
    "ai_tone",
    "ai_max_length",
    "linkedin_account_id",
)

# rollup buckets: a contact counts toward every stage it has passed through
SENT_STATES = {
    CampaignContactStatus.connection_sent,
    CampaignContactStatus.connected,
    CampaignContactStatus.follow_up_sent,
    CampaignContactStatus.replied,
}
ACCEPTED_STATES = {CampaignContactStatus.connected, CampaignContactStatus.follow_up_sent, CampaignContactStatus.replied}
MESSAGED_STATES = {CampaignContactStatus.follow_up_sent, CampaignContactStatus.replied}


def log_activity(
    db: Session,
    campaign_id: int,
    activity_type: str,
    contact_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
) -> CampaignActivity:
    activity = CampaignActivity(
        campaign_id=campaign_id,
        contact_id=contact_id,
        activity_type=activity_type,
        details=details or {},
    )
    db.add(activity)
    return activity


def _own_account(db: Session, user_id: uuid.UUID, account_id: int) -> LinkedInOutreachAccount:
    account = (
        db.query(LinkedInOutreachAccount)
        .filter(LinkedInOutreachAccount.id == account_id, LinkedInOutreachAccount.user_id == user_id)
        .first()
    )
    if not account:
        raise NotFound("LinkedIn account not found")
    return account


def _parse_status(enum_cls, value: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown status: {value}")


def get_campaign(db: Session, campaign_id: int, user_id: uuid.UUID) -> Campaign:
    campaign = db.query(Campaign).filter(Campaign.id == campaign_id, Campaign.user_id == user_id).first()
    if not campaign:
        raise NotFound("Campaign not found")
    return campaign


def list_campaigns(db: Session, user_id: uuid.UUID, status: Optional[str] = None) -> List[Campaign]:
    q = db.query(Campaign).filter(Campaign.user_id == user_id)
    if status:
        q = q.filter(Campaign.status == _parse_status(CampaignStatus, status))
    return q.order_by(Campaign.created_at.desc()).all()


def create_campaign(db: Session, user_id: uuid.UUID, name: str, **fields) -> Campaign:
    if not name or not name.strip():
        raise ValidationError("Campaign name is required")

    account_id = fields.get("linkedin_account_id")
    if account_id is not None:
        _own_account(db, user_id, account_id)

    campaign = Campaign(user_id=user_id, name=name.strip(), status=CampaignStatus.draft)
    for key in EDITABLE_FIELDS:
        if key != "name" and fields.get(key) is not None:
            setattr(campaign, key, fields[key])

    db.add(campaign)
    db.flush()
    log_activity(db, campaign.id, "campaign_created", details={"name": campaign.name})
    db.commit()
    db.refresh(campaign)

    log.info("campaign_created", campaign_id=campaign.id, user_id=str(user_id))
    return campaign


def update_campaign(db: Session, campaign_id: int, user_id: uuid.UUID, **fields) -> Campaign:
    campaign = get_campaign(db, campaign_id, user_id)
    if campaign.status == CampaignStatus.stopped:
        raise ValidationError("Stopped campaigns cannot be edited")

    changes = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS and v is not None}
    if "linkedin_account_id" in changes:
        _own_account(db, user_id, changes["linkedin_account_id"])
    if "name" in changes and not str(changes["name"]).strip():
        raise ValidationError("Campaign name is required")
    for key in ("daily_connection_limit", "ai_max_length"):
        if key in changes and int(changes[key]) < 1:
            raise ValidationError(f"{key} must be at least 1")
    if "follow_up_delay_days" in changes and int(changes["follow_up_delay_days"]) < 0:
        raise ValidationError("follow_up_delay_days cannot be negative")

    for key, value in changes.items():
        setattr(campaign, key, value)
    campaign.updated_at = utcnow()
    db.commit()
    db.refresh(campaign)
    return campaign


def delete_campaign(db: Session, campaign_id: int, user_id: uuid.UUID) -> None:
    campaign = get_campaign(db, campaign_id, user_id)
    if campaign.status not in (CampaignStatus.draft, CampaignStatus.stopped):
        raise ValidationError("Only draft or stopped campaigns can be deleted")
    db.delete(campaign)
    db.commit()
    log.info("campaign_deleted", campaign_id=campaign_id)


### Rollup

def recompute_totals(db: Session, campaign_id: int) -> Dict[str, int]:
    """Derive the campaign counters from campaign_contacts. Safe to call any number of times."""
    rows = (
        db.query(CampaignContact.status, func.count(CampaignContact.id))
        .filter(CampaignContact.campaign_id == campaign_id)
        .group_by(CampaignContact.status)
        .all()
    )
    by_status = {status: n for status, n in rows}

    totals = {
        "total_contacts": sum(by_status.values()),
        "connections_sent": sum(n for s, n in by_status.items() if s in SENT_STATES),
        "connections_accepted": sum(n for s, n in by_status.items() if s in ACCEPTED_STATES),
        "messages_sent": sum(n for s, n in by_status.items() if s in MESSAGED_STATES),
        "replies_received": by_status.get(CampaignContactStatus.replied, 0),
    }

    db.execute(
        update(Campaign)
        .where(Campaign.id == campaign_id)
        .values(**totals, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.flush()
    return totals


### Control

def _transition(
    db: Session,
    campaign: Campaign,
    from_states: Iterable[CampaignStatus],
    to_state: CampaignStatus,
    activity_type: str,
    extra_values: Optional[Dict[str, Any]] = None,
) -> Campaign:
    from_states = tuple(from_states)
    values = {"status": to_state, "updated_at": utcnow()}
    values.update(extra_values or {})

    result = db.execute(
        update(Campaign)
        .where(Campaign.id == campaign.id, Campaign.status.in_(from_states))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise Conflict("Campaign status changed concurrently, reload and try again")

    log_activity(db, campaign.id, activity_type, details={"from": campaign.status.value, "to": to_state.value})
    db.commit()
    db.refresh(campaign)

    log.info(activity_type, campaign_id=campaign.id, status=to_state.value)
    return campaign


def start_campaign(db: Session, campaign_id: int, user_id: uuid.UUID) -> Campaign:
    campaign = get_campaign(db, campaign_id, user_id)

    if campaign.status not in (CampaignStatus.draft, CampaignStatus.paused):
        raise ValidationError("Only draft or paused campaigns can be started")
    if not (campaign.connection_message or "").strip():
        raise ValidationError("Campaign must have a connection message")
    if not campaign.linkedin_account_id:
        raise ValidationError("Campaign must have a LinkedIn account assigned")

    contact_count = db.query(func.count(CampaignContact.id)).filter(CampaignContact.campaign_id == campaign.id).scalar()
    if not contact_count:
        raise ValidationError("Campaign must have at least one contact")

    account = db.query(LinkedInOutreachAccount).filter(LinkedInOutreachAccount.id == campaign.linkedin_account_id).first()
    if not account or not account.is_active:
        raise ValidationError("LinkedIn account is not active")

    now = utcnow()
    return _transition(
        db,
        campaign,
        (CampaignStatus.draft, CampaignStatus.paused),
        CampaignStatus.active,
        "campaign_started",
        {"started_at": func.coalesce(Campaign.started_at, now), "completed_at": None},
    )


def pause_campaign(db: Session, campaign_id: int, user_id: uuid.UUID) -> Campaign:
    campaign = get_campaign(db, campaign_id, user_id)
    if campaign.status != CampaignStatus.active:
        raise ValidationError("Only active campaigns can be paused")
    return _transition(db, campaign, (CampaignStatus.active,), CampaignStatus.paused, "campaign_paused")


def stop_campaign(db: Session, campaign_id: int, user_id: uuid.UUID) -> Campaign:
    campaign = get_campaign(db, campaign_id, user_id)
    if campaign.status not in (CampaignStatus.active, CampaignStatus.paused):
        raise ValidationError("Only active or paused campaigns can be stopped")
    return _transition(
        db,
        campaign,
        (CampaignStatus.active, CampaignStatus.paused),
        CampaignStatus.stopped,
        "campaign_stopped",
        {"completed_at": utcnow()},
    )


def control_campaign(db: Session, campaign_id: int, user_id: uuid.UUID, action: str) -> Campaign:
    if action == "start":
        return start_campaign(db, campaign_id, user_id)
    if action == "pause":
        return pause_campaign(db, campaign_id, user_id)
    if action == "stop":
        return stop_campaign(db, campaign_id, user_id)
    raise ValidationError("Invalid action")


### Contacts in a campaign

def add_contacts(db: Session, campaign_id: int, user_id: uuid.UUID, contact_ids: List[int]) -> Dict[str, int]:
    campaign = get_campaign(db, campaign_id, user_id)
    if campaign.status == CampaignStatus.stopped:
        raise ValidationError("Cannot add contacts to a stopped campaign")
    if not contact_ids:
        raise ValidationError("contact_ids is required")

    wanted = set(contact_ids)
    owned = {
        cid
        for (cid,) in db.query(Contact.id).filter(Contact.id.in_(wanted), Contact.user_id == user_id).all()
    }
    if owned != wanted:
        raise ValidationError("Some contacts do not belong to you")

    existing = {
        cid
        for (cid,) in db.query(CampaignContact.contact_id)
        .filter(CampaignContact.campaign_id == campaign.id, CampaignContact.contact_id.in_(wanted))
        .all()
    }
    added = 0
    for cid in sorted(wanted - existing):
        db.add(CampaignContact(campaign_id=campaign.id, contact_id=cid, status=CampaignContactStatus.pending))
        added += 1

    db.flush()
    totals = recompute_totals(db, campaign.id)
    log_activity(db, campaign.id, "contacts_added", details={"count": added})
    db.commit()

    log.info("campaign_contacts_added", campaign_id=campaign.id, added=added, skipped=len(existing))
    return {"added": added, "skipped": len(existing), "total_contacts": totals["total_contacts"]}


def remove_contact(db: Session, campaign_id: int, user_id: uuid.UUID, contact_id: int) -> None:
    campaign = get_campaign(db, campaign_id, user_id)
    link = (
        db.query(CampaignContact)
        .filter(CampaignContact.campaign_id == campaign.id, CampaignContact.contact_id == contact_id)
        .first()
    )
    if not link:
        raise NotFound("Contact is not part of this campaign")
    if link.status != CampaignContactStatus.pending and campaign.status != CampaignStatus.stopped:
        raise ValidationError("Cannot remove a contact that has already been contacted")

    db.delete(link)
    db.flush()
    recompute_totals(db, campaign.id)
    log_activity(db, campaign.id, "contact_removed", contact_id=contact_id)
    db.commit()


def list_campaign_contacts(db: Session, campaign_id: int, user_id: uuid.UUID, status: Optional[str] = None) -> List[CampaignContact]:
    campaign = get_campaign(db, campaign_id, user_id)
    q = db.query(CampaignContact).filter(CampaignContact.campaign_id == campaign.id)
    if status:
        q = q.filter(CampaignContact.status == _parse_status(CampaignContactStatus, status))
    return q.order_by(CampaignContact.created_at.asc()).all()


def list_activities(db: Session, campaign_id: int, user_id: uuid.UUID, limit: int = 100) -> List[CampaignActivity]:
    campaign = get_campaign(db, campaign_id, user_id)
    return (
        db.query(CampaignActivity)
        .filter(CampaignActivity.campaign_id == campaign.id)
        .order_by(CampaignActivity.created_at.desc(), CampaignActivity.id.desc())
        .limit(min(max(limit, 1), 500))
        .all()
    )
