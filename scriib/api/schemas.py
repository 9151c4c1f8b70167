"""Request bodies and response shaping for the HTTP API."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from scriib.db_models import (
    Campaign,
    CampaignActivity,
    CampaignContact,
    Contact,
    ContactActivity,
    ContactNote,
    GhostwriterApproverLink,
    LinkedInOutreachAccount,
    Post,
    SocialAccount,
    ViralPost,
)

### Requests

class MappingIn(BaseModel):
    email: Optional[str] = None
    full_name: Optional[str] = None

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    sms_opt_in: Optional[bool] = None

class PostCreate(BaseModel):
    content: str
    platforms: Optional[Dict[str, bool]] = None
    approver_id: Optional[uuid.UUID] = None
    ghostwriter_id: Optional[uuid.UUID] = None
    scheduled_time: Optional[datetime] = None
    media_urls: Optional[List[str]] = None

class PostUpdate(BaseModel):
    content: Optional[str] = None
    platforms: Optional[Dict[str, bool]] = None
    approver_id: Optional[uuid.UUID] = None
    ghostwriter_id: Optional[uuid.UUID] = None
    media_urls: Optional[List[str]] = None

class ScheduleIn(BaseModel):
    scheduled_time: datetime

class ApproveIn(BaseModel):
    scheduled_time: Optional[datetime] = None

class RejectIn(BaseModel):
    reason: Optional[str] = None

class LinkCreate(BaseModel):
    ghostwriter_id: Optional[uuid.UUID] = None
    approver_id: Optional[uuid.UUID] = None

class SocialAccountIn(BaseModel):
    platform: str
    access_token: str
    platform_user_id: Optional[str] = None
    screen_name: Optional[str] = None

class OutreachAccountIn(BaseModel):
    unipile_account_id: str
    account_name: Optional[str] = None

class CampaignCreate(BaseModel):
    name: str
    description: Optional[str] = None
    connection_message: Optional[str] = None
    follow_up_message: Optional[str] = None
    follow_up_delay_days: Optional[int] = Field(default=None, ge=0)
    daily_connection_limit: Optional[int] = Field(default=None, ge=1, le=100)
    use_ai_personalization: Optional[bool] = None
    ai_tone: Optional[str] = None
    ai_max_length: Optional[int] = Field(default=None, ge=1, le=300)
    linkedin_account_id: Optional[int] = None

class CampaignUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    connection_message: Optional[str] = None
    follow_up_message: Optional[str] = None
    follow_up_delay_days: Optional[int] = None
    daily_connection_limit: Optional[int] = None
    use_ai_personalization: Optional[bool] = None
    ai_tone: Optional[str] = None
    ai_max_length: Optional[int] = None
    linkedin_account_id: Optional[int] = None

class ControlIn(BaseModel):
    action: str

class ContactIdsIn(BaseModel):
    contact_ids: List[int]

class ContactCreate(BaseModel):
    name: str
    subtitle: Optional[str] = None
    profile_url: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    engagement_type: Optional[str] = None
    post_url: Optional[str] = None

class ContactUpdate(BaseModel):
    name: Optional[str] = None
    subtitle: Optional[str] = None
    profile_url: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    engagement_type: Optional[str] = None
    post_url: Optional[str] = None

class NoteIn(BaseModel):
    body: str

class ActivityIn(BaseModel):
    activity_type: str
    description: Optional[str] = None

class GenerateIn(BaseModel):
    topic: str
    platform: str = "linkedin"
    tone: str = "professional"
    max_length: Optional[int] = None

class PersonalizeIn(BaseModel):
    template: str
    name: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    tone: str = "professional"
    max_length: int = Field(default=200, ge=20, le=1000)
    message_type: str = "connection"

class ViralSearchIn(BaseModel):
    keyword: str
    total_posts: int = Field(default=50, ge=1, le=200)

class ReminderIn(BaseModel):
    dry_run: bool = False

### Responses

def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None

def _uid(v: Optional[uuid.UUID]) -> Optional[str]:
    return str(v) if v else None

def post_out(p: Post, role: Optional[str] = None) -> Dict[str, Any]:
    out = {
        "id": p.id,
        "user_id": _uid(p.user_id),
        "approver_id": _uid(p.approver_id),
        "ghostwriter_id": _uid(p.ghostwriter_id),
        "content": p.content,
        "status": p.status.value,
        "scheduled_time": _iso(p.scheduled_time),
        "platforms": p.platforms or {},
        "media_urls": p.media_urls or [],
        "archived": p.archived,
        "rejection_reason": p.rejection_reason,
        "error_message": p.error_message,
        "published_at": _iso(p.published_at),
        "created_at": _iso(p.created_at),
        "edited_at": _iso(p.edited_at),
    }
    if role:
        out["role"] = role
    return out

def link_out(link: GhostwriterApproverLink) -> Dict[str, Any]:
    return {
        "id": link.id,
        "ghostwriter_id": _uid(link.ghostwriter_id),
        "approver_id": _uid(link.approver_id),
        "active": link.active,
        "created_at": _iso(link.created_at),
        "revoked_at": _iso(link.revoked_at),
    }

def social_account_out(a: SocialAccount) -> Dict[str, Any]:
    # access_token never leaves the API
    return {"id": a.id, "platform": a.platform.value, "platform_user_id": a.platform_user_id, "screen_name": a.screen_name}

def outreach_account_out(a: LinkedInOutreachAccount) -> Dict[str, Any]:
    return {
        "id": a.id,
        "account_name": a.account_name,
        "unipile_account_id": a.unipile_account_id,
        "is_active": a.is_active,
    }

def campaign_out(c: Campaign) -> Dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "status": c.status.value,
        "connection_message": c.connection_message,
        "follow_up_message": c.follow_up_message,
        "follow_up_delay_days": c.follow_up_delay_days,
        "daily_connection_limit": c.daily_connection_limit,
        "use_ai_personalization": c.use_ai_personalization,
        "ai_tone": c.ai_tone,
        "ai_max_length": c.ai_max_length,
        "linkedin_account_id": c.linkedin_account_id,
        "started_at": _iso(c.started_at),
        "completed_at": _iso(c.completed_at),
        "total_contacts": c.total_contacts,
        "connections_sent": c.connections_sent,
        "connections_accepted": c.connections_accepted,
        "messages_sent": c.messages_sent,
        "replies_received": c.replies_received,
        "created_at": _iso(c.created_at),
    }

def campaign_contact_out(cc: CampaignContact) -> Dict[str, Any]:
    return {
        "id": cc.id,
        "contact_id": cc.contact_id,
        "name": cc.contact.name if cc.contact else None,
        "status": cc.status.value,
        "error_message": cc.error_message,
        "connection_sent_at": _iso(cc.connection_sent_at),
        "connection_accepted_at": _iso(cc.connection_accepted_at),
        "follow_up_sent_at": _iso(cc.follow_up_sent_at),
        "reply_received_at": _iso(cc.reply_received_at),
    }

def campaign_activity_out(a: CampaignActivity) -> Dict[str, Any]:
    return {
        "id": a.id,
        "activity_type": a.activity_type,
        "contact_id": a.contact_id,
        "details": a.details or {},
        "created_at": _iso(a.created_at),
    }

def contact_out(c: Contact) -> Dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "subtitle": c.subtitle,
        "profile_url": c.profile_url,
        "job_title": c.job_title,
        "company": c.company,
        "email": c.email,
        "engagement_type": c.engagement_type,
        "post_url": c.post_url,
        "enrichment_status": c.enrichment_status.value,
        "enriched_at": _iso(c.enriched_at),
        "created_at": _iso(c.created_at),
    }

def note_out(n: ContactNote) -> Dict[str, Any]:
    return {"id": n.id, "contact_id": n.contact_id, "body": n.body, "created_at": _iso(n.created_at), "updated_at": _iso(n.updated_at)}

def contact_activity_out(a: ContactActivity) -> Dict[str, Any]:
    return {
        "id": a.id,
        "activity_type": a.activity_type,
        "description": a.description,
        "details": a.details or {},
        "created_at": _iso(a.created_at),
    }

def viral_post_out(v: ViralPost) -> Dict[str, Any]:
    return {
        "id": v.id,
        "post_url": v.post_url,
        "keyword": v.keyword,
        "author_name": v.author_name,
        "author_url": v.author_url,
        "text": v.text,
        "likes": v.likes,
        "comments": v.comments,
        "reposts": v.reposts,
        "engagement_score": v.engagement_score,
        "posted_at": _iso(v.posted_at),
    }
