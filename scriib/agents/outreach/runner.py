"""
Campaign execution.

Each pass, for every active campaign:
  1) verify the Unipile account is still reachable
  2) send connection requests to pending contacts, bounded by the daily limit
  3) send the follow-up to contacts connected for at least follow_up_delay_days
  4) recompute the campaign rollup

A failed send marks only that contact; the campaign keeps going.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from scriib.agents import safety
from scriib.agents.outreach.personalization import personalize
from scriib.agents.outreach.unipile import UnipileClient, UnipileError, public_identifier
from scriib.core.campaigns import log_activity, recompute_totals
from scriib.db_models import (
    Campaign,
    CampaignContact,
    CampaignContactStatus,
    CampaignDailyStat,
    CampaignStatus,
    utcnow,
)

log = structlog.get_logger(__name__)


# transient follow-up failures (network, 429, 5xx) are retried this many times in total
MAX_FOLLOW_UP_ATTEMPTS = 3


class GuardrailBlocked(Exception):
    pass


def daily_stat(db: Session, campaign_id: int, day: date) -> CampaignDailyStat:
    stat = (
        db.query(CampaignDailyStat)
        .filter(CampaignDailyStat.campaign_id == campaign_id, CampaignDailyStat.day == day)
        .first()
    )
    if not stat:
        stat = CampaignDailyStat(campaign_id=campaign_id, day=day, connections_sent=0, follow_ups_sent=0)
        db.add(stat)
        db.flush()
    return stat


def _check_guardrails(redis_client) -> None:
    if not safety.guardrails_ok(redis_client):
        raise GuardrailBlocked()


def _count_action(redis_client) -> None:
    # only delivered invites and messages count toward the hourly cap
    safety.increment_action_count(1, redis_client)


def is_transient(error: UnipileError) -> bool:
    status = error.upstream_status or 0
    return error.kind == "network" or status == 429 or status >= 500


def send_connection_requests(
    db: Session,
    campaign: Campaign,
    client: UnipileClient,
    now: datetime,
    redis_client=None,
    llm_client=None,
) -> Dict[str, int]:
    stat = daily_stat(db, campaign.id, now.date())
    remaining = max(campaign.daily_connection_limit - stat.connections_sent, 0)
    if remaining == 0:
        log.info("campaign_daily_limit_reached", campaign_id=campaign.id)
        return {"sent": 0, "failed": 0}

    account_id = campaign.linkedin_account.unipile_account_id
    pending = (
        db.query(CampaignContact)
        .filter(CampaignContact.campaign_id == campaign.id, CampaignContact.status == CampaignContactStatus.pending)
        .order_by(CampaignContact.created_at.asc(), CampaignContact.id.asc())
        .limit(remaining)
        .all()
    )

    sent = failed = 0
    for cc in pending:
        contact = cc.contact
        identifier = public_identifier(contact.profile_url)
        if not identifier:
            cc.status = CampaignContactStatus.failed
            cc.error_message = "Invalid LinkedIn profile URL"
            log_activity(db, campaign.id, "connection_failed", contact.id, {"error": cc.error_message})
            db.commit()
            failed += 1
            continue

        _check_guardrails(redis_client)
        try:
            profile = client.get_linkedin_profile(account_id, identifier)
            provider_id = profile.get("provider_id") if isinstance(profile, dict) else None
            if not provider_id:
                raise UnipileError("profile has no provider_id", kind="payload", payload=profile)

            message = personalize(
                campaign.connection_message,
                contact,
                use_ai=campaign.use_ai_personalization,
                tone=campaign.ai_tone,
                max_length=campaign.ai_max_length,
                message_type="connection",
                llm_client=llm_client,
            )
            client.send_connection_request(account_id, provider_id, message)
            _count_action(redis_client)
        except UnipileError as e:
            cc.status = CampaignContactStatus.failed
            cc.error_message = str(e)[:2000]
            log_activity(db, campaign.id, "connection_failed", contact.id, {"error": cc.error_message})
            log.warning("connection_request_failed", campaign_id=campaign.id, contact_id=contact.id, error=str(e))
            failed += 1
        else:
            cc.status = CampaignContactStatus.connection_sent
            cc.provider_id = provider_id
            cc.personalized_message = message
            cc.connection_sent_at = now
            cc.error_message = None
            stat.connections_sent += 1
            log_activity(db, campaign.id, "connection_sent", contact.id)
            sent += 1
        db.commit()

    return {"sent": sent, "failed": failed}


def send_follow_ups(
    db: Session,
    campaign: Campaign,
    client: UnipileClient,
    now: datetime,
    redis_client=None,
    llm_client=None,
) -> Dict[str, int]:
    if not (campaign.follow_up_message or "").strip():
        return {"sent": 0, "failed": 0}

    cutoff = now - timedelta(days=campaign.follow_up_delay_days)
    account_id = campaign.linkedin_account.unipile_account_id
    due = (
        db.query(CampaignContact)
        .filter(
            CampaignContact.campaign_id == campaign.id,
            CampaignContact.status == CampaignContactStatus.connected,
            CampaignContact.provider_id.isnot(None),
            or_(
                CampaignContact.connection_accepted_at <= cutoff,
                (CampaignContact.connection_accepted_at.is_(None) & (CampaignContact.connection_sent_at <= cutoff)),
            ),
        )
        .all()
    )

    stat = daily_stat(db, campaign.id, now.date())
    sent = failed = 0
    for cc in due:
        _check_guardrails(redis_client)
        try:
            text = personalize(
                campaign.follow_up_message,
                cc.contact,
                use_ai=campaign.use_ai_personalization,
                tone=campaign.ai_tone,
                max_length=campaign.ai_max_length,
                message_type="follow_up",
                llm_client=llm_client,
            )
            chat = client.start_chat(account_id, cc.provider_id, text)
            _count_action(redis_client)
        except UnipileError as e:
            cc.follow_up_attempts = (cc.follow_up_attempts or 0) + 1
            cc.error_message = str(e)[:2000]
            final = not is_transient(e) or cc.follow_up_attempts >= MAX_FOLLOW_UP_ATTEMPTS
            if final:
                cc.status = CampaignContactStatus.failed
            # otherwise it stays connected and the next pass retries
            log_activity(
                db, campaign.id, "follow_up_failed", cc.contact_id,
                {"error": cc.error_message, "attempt": cc.follow_up_attempts, "final": final},
            )
            log.warning("follow_up_failed", campaign_id=campaign.id, contact_id=cc.contact_id, error=str(e))
            failed += 1
        else:
            cc.status = CampaignContactStatus.follow_up_sent
            cc.chat_id = (chat or {}).get("chat_id") or (chat or {}).get("id")
            cc.follow_up_sent_at = now
            cc.error_message = None
            stat.follow_ups_sent += 1
            log_activity(db, campaign.id, "follow_up_sent", cc.contact_id)
            sent += 1
        db.commit()

    return {"sent": sent, "failed": failed}


def execute_campaigns(
    db: Session,
    client: Optional[UnipileClient] = None,
    now: Optional[datetime] = None,
    redis_client=None,
    llm_client=None,
) -> Dict[str, Any]:
    client = client or UnipileClient()
    now = now or utcnow()

    summary: Dict[str, Any] = {
        "campaigns": 0,
        "connections_sent": 0,
        "follow_ups_sent": 0,
        "failed": 0,
        "blocked": False,
    }
    campaigns = db.query(Campaign).filter(Campaign.status == CampaignStatus.active).all()

    for campaign in campaigns:
        account = campaign.linkedin_account
        if not account or not account.is_active:
            log.warning("campaign_account_inactive", campaign_id=campaign.id)
            continue

        try:
            client.get_account(account.unipile_account_id)
        except UnipileError as e:
            log_activity(db, campaign.id, "account_check_failed", details={"error": str(e)[:500]})
            db.commit()
            log.warning("campaign_account_check_failed", campaign_id=campaign.id, error=str(e))
            continue

        summary["campaigns"] += 1
        try:
            invites = send_connection_requests(db, campaign, client, now, redis_client, llm_client)
            follow_ups = send_follow_ups(db, campaign, client, now, redis_client, llm_client)
        except GuardrailBlocked:
            summary["blocked"] = True
            db.commit()
            recompute_totals(db, campaign.id)
            db.commit()
            log.warning("outreach_guardrail_blocked", campaign_id=campaign.id)
            break

        summary["connections_sent"] += invites["sent"]
        summary["follow_ups_sent"] += follow_ups["sent"]
        summary["failed"] += invites["failed"] + follow_ups["failed"]

        recompute_totals(db, campaign.id)
        db.commit()

    log.info("campaigns_executed", **summary)
    return summary


### Replies

def _parse_ts(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def inbound_after(messages: List[Dict[str, Any]], since: Optional[datetime]) -> Optional[Dict[str, Any]]:
    """First message not sent by us that is newer than `since`."""
    for msg in messages:
        if msg.get("is_sender") in (1, True):
            continue
        ts = _parse_ts(msg.get("timestamp"))
        if since is None or ts is None or ts > since:
            return msg
    return None


def mark_replied(db: Session, cc: CampaignContact, when: datetime, preview: Optional[str] = None) -> None:
    cc.status = CampaignContactStatus.replied
    cc.reply_received_at = when
    log_activity(db, cc.campaign_id, "reply_received", cc.contact_id, {"preview": (preview or "")[:100]})


def check_replies(db: Session, client: Optional[UnipileClient] = None, now: Optional[datetime] = None) -> Dict[str, int]:
    client = client or UnipileClient()
    now = now or utcnow()

    waiting = (
        db.query(CampaignContact)
        .join(Campaign, Campaign.id == CampaignContact.campaign_id)
        .filter(
            Campaign.status.in_((CampaignStatus.active, CampaignStatus.paused)),
            CampaignContact.status == CampaignContactStatus.follow_up_sent,
            CampaignContact.chat_id.isnot(None),
        )
        .all()
    )

    replies = errors = 0
    touched = set()
    for cc in waiting:
        try:
            messages = client.get_chat_messages(cc.chat_id)
        except UnipileError as e:
            errors += 1
            log.warning("reply_check_failed", campaign_contact_id=cc.id, error=str(e))
            continue

        msg = inbound_after(messages, cc.follow_up_sent_at)
        if msg:
            mark_replied(db, cc, _parse_ts(msg.get("timestamp")) or now, msg.get("text"))
            touched.add(cc.campaign_id)
            replies += 1

    for campaign_id in touched:
        recompute_totals(db, campaign_id)
    db.commit()

    log.info("replies_checked", checked=len(waiting), replies=replies, errors=errors)
    return {"checked": len(waiting), "replies": replies, "errors": errors}
