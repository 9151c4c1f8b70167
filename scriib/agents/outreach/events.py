"""Unipile webhook events -> campaign contact updates."""
from __future__ import annotations

from typing import Any, Dict, List

import structlog
from sqlalchemy.orm import Session

from scriib.agents.outreach.runner import mark_replied
from scriib.agents.outreach.unipile import public_identifier
from scriib.core.campaigns import log_activity, recompute_totals
from scriib.db_models import (
    Campaign,
    CampaignContact,
    CampaignContactStatus,
    Contact,
    LinkedInOutreachAccount,
    utcnow,
)

log = structlog.get_logger(__name__)


def _matching_contacts(db: Session, data: Dict[str, Any], statuses) -> List[CampaignContact]:
    account = (
        db.query(LinkedInOutreachAccount)
        .filter(LinkedInOutreachAccount.unipile_account_id == data.get("account_id"))
        .first()
    )
    if not account:
        log.info("unipile_event_unknown_account", account_id=data.get("account_id"))
        return []

    q = (
        db.query(CampaignContact)
        .join(Campaign, Campaign.id == CampaignContact.campaign_id)
        .join(Contact, Contact.id == CampaignContact.contact_id)
        .filter(Campaign.linkedin_account_id == account.id, CampaignContact.status.in_(statuses))
    )

    provider_id = data.get("provider_id") or data.get("sender_id")
    if provider_id:
        return q.filter(CampaignContact.provider_id == provider_id).all()

    # profile URLs differ in trailing slashes/query strings; compare public ids
    wanted = public_identifier(data.get("profile_url"))
    if not wanted:
        return []
    return [cc for cc in q.all() if public_identifier(cc.contact.profile_url) == wanted]


def handle_unipile_event(db: Session, payload: Dict[str, Any]) -> Dict[str, Any]:
    event = payload.get("event")
    data = payload.get("data") or {}
    now = utcnow()

    if event == "connection.accepted":
        matches = _matching_contacts(db, data, (CampaignContactStatus.connection_sent,))
        for cc in matches:
            cc.status = CampaignContactStatus.connected
            cc.connection_accepted_at = now
            log_activity(db, cc.campaign_id, "connection_accepted", cc.contact_id)
    elif event == "connection.rejected":
        matches = _matching_contacts(db, data, (CampaignContactStatus.connection_sent,))
        for cc in matches:
            cc.status = CampaignContactStatus.failed
            cc.error_message = "Connection request rejected"
            log_activity(db, cc.campaign_id, "connection_rejected", cc.contact_id)
    elif event == "message.received":
        matches = _matching_contacts(
            db, data, (CampaignContactStatus.connected, CampaignContactStatus.follow_up_sent)
        )
        for cc in matches:
            mark_replied(db, cc, now, data.get("text"))
    else:
        log.info("unipile_event_ignored", unipile_event=event)
        return {"success": True, "handled": 0}

    db.flush()
    for campaign_id in {cc.campaign_id for cc in matches}:
        recompute_totals(db, campaign_id)
    db.commit()

    log.info("unipile_event_handled", unipile_event=event, handled=len(matches))
    return {"success": True, "handled": len(matches)}
