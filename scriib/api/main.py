import uuid
from types import SimpleNamespace
from typing import Optional

import structlog
from celery import Celery
from fastapi import Depends, FastAPI, File, Header, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from scriib.agents import llm
from scriib.agents.analytics.viral_posts import list_viral_posts
from scriib.agents.notify.reminders import send_approval_reminders
from scriib.agents.outreach import runner
from scriib.agents.outreach.events import handle_unipile_event
from scriib.agents.outreach.personalization import personalize
from scriib.agents.outreach.unipile import UnipileClient
from scriib.agents.publishing.sweep import run_sweep
from scriib.api import schemas
from scriib.api.auth import AuthContext, current_subject, require_admin, require_auth, require_cron
from scriib.core import accounts, campaigns, contacts, identity, posts, relationships
from scriib.core.errors import AuthenticationError, ScriibError
from scriib.db import engine, get_db
from scriib.db_log_handler import attach_db_log_handler
from scriib.db_models import Base
from scriib.logging_setup import configure_structured_logging
from scriib.settings import settings

### Init app

app = FastAPI(title="Scriib Control Plane", version="0.1.0")

### Logging middleware wire-in ###

from scriib.api.middleware.request_id import RequestIDMiddleware
app.add_middleware(RequestIDMiddleware)

from scriib.api.middleware.access_log import AccessLogMiddleware
app.add_middleware(AccessLogMiddleware)

### Logging init ###

configure_structured_logging(settings.service_name)

if settings.db_log_enabled:
    # Attach DB handler to root logger for admin visibility
    attach_db_log_handler(settings.db_log_level)

log = structlog.get_logger(__name__)
log.info("api_startup", service=settings.service_name, environment=settings.environment)

###

Base.metadata.create_all(bind=engine)

ENRICH_CONTACT_TASK = "tasks.enrich_contact"
VIRAL_POSTS_TASK = "tasks.discover_viral_posts"

celery_client = Celery("scriib_api_client", broker=settings.redis_url, backend=settings.redis_url)

### Errors

@app.exception_handler(ScriibError)
def scriib_error_handler(request: Request, exc: ScriibError):
    body = {"error": exc.message}
    if exc.status_code >= 500:
        log.exception(
            "request_failed",
            path=request.url.path,
            error=str(exc),
            upstream_status=getattr(exc, "upstream_status", None),
        )
        if settings.is_production:
            body = {"error": exc.public_message}
        else:
            body["details"] = str(exc)
    elif exc.details is not None and not settings.is_production:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)

@app.exception_handler(Exception)
def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("request_crashed", path=request.url.path, error=str(exc))
    body = {"error": "Internal server error"}
    if not settings.is_production:
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)

@app.get("/health")
def health():
    return {"ok": True}

### Identity

@app.post("/user/mapping")
def create_user_mapping(
    body: schemas.MappingIn,
    subject: str = Depends(current_subject),
    db: Session = Depends(get_db),
):
    mapping, existed = identity.create_mapping(db, subject, email=body.email, full_name=body.full_name)
    return {"success": True, "user_id": str(mapping.user_id), "alreadyExisted": existed}

@app.get("/user/mapping")
@app.get("/user/uuid")
def get_user_uuid(ctx: AuthContext = Depends(require_auth)):
    return {"user_id": str(ctx.user_id)}

@app.get("/user/profile")
def get_profile(ctx: AuthContext = Depends(require_auth)):
    p = identity.get_profile(ctx.db, ctx.user_id)
    return {
        "user_id": str(p.user_id),
        "email": p.email,
        "full_name": p.full_name,
        "phone_number": p.phone_number,
        "sms_opt_in": p.sms_opt_in,
        "is_admin": p.is_admin,
    }

@app.patch("/user/profile")
def update_profile(body: schemas.ProfileUpdate, ctx: AuthContext = Depends(require_auth)):
    identity.update_profile(ctx.db, ctx.user_id, **body.model_dump(exclude_unset=True))
    return {"success": True}

@app.delete("/user/mapping")
@app.delete("/user")
def delete_user(subject: str = Depends(current_subject), db: Session = Depends(get_db)):
    user_id = identity.delete_account(db, subject)
    return {"success": True, "user_id": str(user_id)}

### Connected accounts

@app.get("/social-accounts")
def list_social_accounts(ctx: AuthContext = Depends(require_auth)):
    return [schemas.social_account_out(a) for a in accounts.list_social_accounts(ctx.db, ctx.user_id)]

@app.post("/social-accounts")
def connect_social_account(body: schemas.SocialAccountIn, ctx: AuthContext = Depends(require_auth)):
    a = accounts.upsert_social_account(ctx.db, ctx.user_id, **body.model_dump())
    return schemas.social_account_out(a)

@app.delete("/social-accounts/{account_id}")
def disconnect_social_account(account_id: int, ctx: AuthContext = Depends(require_auth)):
    accounts.delete_social_account(ctx.db, ctx.user_id, account_id)
    return {"success": True}

@app.get("/outreach/accounts")
def list_outreach_accounts(ctx: AuthContext = Depends(require_auth)):
    return [schemas.outreach_account_out(a) for a in accounts.list_outreach_accounts(ctx.db, ctx.user_id)]

@app.post("/outreach/accounts")
def add_outreach_account(body: schemas.OutreachAccountIn, ctx: AuthContext = Depends(require_auth)):
    # account must exist on the Unipile side before we store it
    UnipileClient().get_account(body.unipile_account_id)
    a = accounts.add_outreach_account(ctx.db, ctx.user_id, body.unipile_account_id, body.account_name)
    return schemas.outreach_account_out(a)

@app.post("/outreach/accounts/connect-link")
def outreach_connect_link(ctx: AuthContext = Depends(require_auth)):
    url = UnipileClient().create_hosted_auth_link(
        notify_url=f"{settings.site_url}/api/webhooks/unipile",
        success_url=f"{settings.site_url}/outreach",
        name=str(ctx.user_id),
    )
    return {"url": url}

@app.delete("/outreach/accounts/{account_id}")
def deactivate_outreach_account(account_id: int, ctx: AuthContext = Depends(require_auth)):
    a = accounts.deactivate_outreach_account(ctx.db, ctx.user_id, account_id)
    return schemas.outreach_account_out(a)

### Posts

@app.post("/posts")
def create_post(body: schemas.PostCreate, ctx: AuthContext = Depends(require_auth)):
    p = posts.create_post(ctx.db, ctx.user_id, **body.model_dump())
    return schemas.post_out(p, "owner")

@app.get("/posts/user-related")
def user_related_posts(
    status: Optional[str] = None,
    include_archived: bool = False,
    limit: int = 50,
    offset: int = 0,
    ctx: AuthContext = Depends(require_auth),
):
    result = posts.list_user_posts(ctx.db, ctx.user_id, status, include_archived, limit, offset)
    return {
        "posts": [schemas.post_out(p, role) for p, role in result["posts"]],
        "statusCounts": result["status_counts"],
    }

@app.get("/posts/{post_id}")
def get_post(post_id: int, ctx: AuthContext = Depends(require_auth)):
    p = posts.get_post_for(ctx.db, post_id, ctx.user_id)
    return schemas.post_out(p)

@app.patch("/posts/{post_id}")
def update_post(post_id: int, body: schemas.PostUpdate, ctx: AuthContext = Depends(require_auth)):
    p = posts.update_post(ctx.db, post_id, ctx.user_id, **body.model_dump(exclude_unset=True))
    return schemas.post_out(p)

@app.delete("/posts/{post_id}")
def delete_post(post_id: int, ctx: AuthContext = Depends(require_auth)):
    posts.delete_post(ctx.db, post_id, ctx.user_id)
    return {"success": True}

@app.post("/posts/{post_id}/submit")
def submit_post(post_id: int, ctx: AuthContext = Depends(require_auth)):
    return schemas.post_out(posts.submit_for_approval(ctx.db, post_id, ctx.user_id))

@app.post("/posts/{post_id}/approve")
def approve_post(post_id: int, body: schemas.ApproveIn, ctx: AuthContext = Depends(require_auth)):
    return schemas.post_out(posts.approve_post(ctx.db, post_id, ctx.user_id, body.scheduled_time))

@app.post("/posts/{post_id}/reject")
def reject_post(post_id: int, body: schemas.RejectIn, ctx: AuthContext = Depends(require_auth)):
    return schemas.post_out(posts.reject_post(ctx.db, post_id, ctx.user_id, body.reason))

@app.post("/posts/{post_id}/schedule")
def schedule_post(post_id: int, body: schemas.ScheduleIn, ctx: AuthContext = Depends(require_auth)):
    return schemas.post_out(posts.schedule_post(ctx.db, post_id, ctx.user_id, body.scheduled_time))

@app.post("/posts/{post_id}/archive")
def archive_post(post_id: int, ctx: AuthContext = Depends(require_auth)):
    return schemas.post_out(posts.archive_post(ctx.db, post_id, ctx.user_id))

@app.post("/posts/{post_id}/unarchive")
def unarchive_post(post_id: int, ctx: AuthContext = Depends(require_auth)):
    return schemas.post_out(posts.unarchive_post(ctx.db, post_id, ctx.user_id))

### Ghostwriter / approver links (admin)

@app.get("/admin/relationships")
def list_relationships(
    user_id: Optional[uuid.UUID] = None,
    role: Optional[str] = None,
    ctx: AuthContext = Depends(require_admin),
):
    return [schemas.link_out(l) for l in relationships.list_links(ctx.db, user_id, role)]

@app.post("/admin/relationships")
def create_relationship(body: schemas.LinkCreate, ctx: AuthContext = Depends(require_admin)):
    link = relationships.create_link(ctx.db, body.ghostwriter_id, body.approver_id)
    return schemas.link_out(link)

@app.delete("/admin/relationships/{link_id}")
def revoke_relationship(link_id: int, ctx: AuthContext = Depends(require_admin)):
    return schemas.link_out(relationships.revoke_link(ctx.db, link_id))

### Campaigns

@app.get("/campaigns")
def list_campaigns(status: Optional[str] = None, ctx: AuthContext = Depends(require_auth)):
    return [schemas.campaign_out(c) for c in campaigns.list_campaigns(ctx.db, ctx.user_id, status)]

@app.post("/campaigns")
def create_campaign(body: schemas.CampaignCreate, ctx: AuthContext = Depends(require_auth)):
    c = campaigns.create_campaign(ctx.db, ctx.user_id, **body.model_dump())
    return schemas.campaign_out(c)

@app.get("/campaigns/{campaign_id}")
def get_campaign(campaign_id: int, ctx: AuthContext = Depends(require_auth)):
    return schemas.campaign_out(campaigns.get_campaign(ctx.db, campaign_id, ctx.user_id))

@app.patch("/campaigns/{campaign_id}")
def update_campaign(campaign_id: int, body: schemas.CampaignUpdate, ctx: AuthContext = Depends(require_auth)):
    c = campaigns.update_campaign(ctx.db, campaign_id, ctx.user_id, **body.model_dump(exclude_unset=True))
    return schemas.campaign_out(c)

@app.delete("/campaigns/{campaign_id}")
def delete_campaign(campaign_id: int, ctx: AuthContext = Depends(require_auth)):
    campaigns.delete_campaign(ctx.db, campaign_id, ctx.user_id)
    return {"success": True}

@app.post("/campaigns/{campaign_id}/control")
def control_campaign(campaign_id: int, body: schemas.ControlIn, ctx: AuthContext = Depends(require_auth)):
    c = campaigns.control_campaign(ctx.db, campaign_id, ctx.user_id, body.action)
    return {"success": True, "campaign": schemas.campaign_out(c)}

@app.get("/campaigns/{campaign_id}/contacts")
def list_campaign_contacts(campaign_id: int, status: Optional[str] = None, ctx: AuthContext = Depends(require_auth)):
    rows = campaigns.list_campaign_contacts(ctx.db, campaign_id, ctx.user_id, status)
    return [schemas.campaign_contact_out(cc) for cc in rows]

@app.post("/campaigns/{campaign_id}/contacts")
def add_campaign_contacts(campaign_id: int, body: schemas.ContactIdsIn, ctx: AuthContext = Depends(require_auth)):
    return campaigns.add_contacts(ctx.db, campaign_id, ctx.user_id, body.contact_ids)

@app.delete("/campaigns/{campaign_id}/contacts/{contact_id}")
def remove_campaign_contact(campaign_id: int, contact_id: int, ctx: AuthContext = Depends(require_auth)):
    campaigns.remove_contact(ctx.db, campaign_id, ctx.user_id, contact_id)
    return {"success": True}

@app.get("/campaigns/{campaign_id}/activities")
def list_campaign_activities(campaign_id: int, limit: int = 100, ctx: AuthContext = Depends(require_auth)):
    rows = campaigns.list_activities(ctx.db, campaign_id, ctx.user_id, limit)
    return [schemas.campaign_activity_out(a) for a in rows]

### CRM

@app.get("/crm/contacts")
def list_contacts(search: Optional[str] = None, limit: int = 100, offset: int = 0, ctx: AuthContext = Depends(require_auth)):
    return [schemas.contact_out(c) for c in contacts.list_contacts(ctx.db, ctx.user_id, search, limit, offset)]

@app.post("/crm/contacts")
def create_contact(body: schemas.ContactCreate, ctx: AuthContext = Depends(require_auth)):
    fields = body.model_dump()
    c = contacts.create_contact(ctx.db, ctx.user_id, fields.pop("name"), **fields)
    return schemas.contact_out(c)

@app.get("/crm/contacts/{contact_id}")
def get_contact(contact_id: int, ctx: AuthContext = Depends(require_auth)):
    return schemas.contact_out(contacts.get_contact(ctx.db, contact_id, ctx.user_id))

@app.patch("/crm/contacts/{contact_id}")
def update_contact(contact_id: int, body: schemas.ContactUpdate, ctx: AuthContext = Depends(require_auth)):
    c = contacts.update_contact(ctx.db, contact_id, ctx.user_id, **body.model_dump(exclude_unset=True))
    return schemas.contact_out(c)

@app.delete("/crm/contacts/{contact_id}")
def delete_contact(contact_id: int, ctx: AuthContext = Depends(require_auth)):
    contacts.delete_contact(ctx.db, contact_id, ctx.user_id)
    return {"success": True}

@app.delete("/crm/contacts")
def delete_all_contacts(ctx: AuthContext = Depends(require_auth)):
    return {"success": True, "deleted": contacts.delete_all_contacts(ctx.db, ctx.user_id)}

@app.post("/crm/contacts/{contact_id}/enrich")
def enrich_contact(contact_id: int, ctx: AuthContext = Depends(require_auth)):
    c = contacts.mark_enrichment_pending(ctx.db, contact_id, ctx.user_id)
    # scraper runs take minutes; the worker polls Apify
    celery_client.send_task(ENRICH_CONTACT_TASK, args=[c.id])
    return {"success": True, "enrichment_status": c.enrichment_status.value}

@app.get("/crm/contacts/{contact_id}/notes")
def list_notes(contact_id: int, ctx: AuthContext = Depends(require_auth)):
    return [schemas.note_out(n) for n in contacts.list_notes(ctx.db, contact_id, ctx.user_id)]

@app.post("/crm/contacts/{contact_id}/notes")
def add_note(contact_id: int, body: schemas.NoteIn, ctx: AuthContext = Depends(require_auth)):
    return schemas.note_out(contacts.add_note(ctx.db, contact_id, ctx.user_id, body.body))

@app.patch("/crm/notes/{note_id}")
def update_note(note_id: int, body: schemas.NoteIn, ctx: AuthContext = Depends(require_auth)):
    return schemas.note_out(contacts.update_note(ctx.db, note_id, ctx.user_id, body.body))

@app.delete("/crm/notes/{note_id}")
def delete_note(note_id: int, ctx: AuthContext = Depends(require_auth)):
    contacts.delete_note(ctx.db, note_id, ctx.user_id)
    return {"success": True}

@app.get("/crm/contacts/{contact_id}/activities")
def list_contact_activities(contact_id: int, ctx: AuthContext = Depends(require_auth)):
    return [schemas.contact_activity_out(a) for a in contacts.list_activities(ctx.db, contact_id, ctx.user_id)]

@app.post("/crm/contacts/{contact_id}/activities")
def create_contact_activity(contact_id: int, body: schemas.ActivityIn, ctx: AuthContext = Depends(require_auth)):
    a = contacts.create_activity(ctx.db, contact_id, ctx.user_id, body.activity_type, body.description)
    return schemas.contact_activity_out(a)

### AI

@app.post("/ai/generate")
def ai_generate(body: schemas.GenerateIn, ctx: AuthContext = Depends(require_auth)):
    text = llm.generate_post(body.topic, platform=body.platform, tone=body.tone, max_length=body.max_length)
    return {"content": text}

@app.post("/ai/personalize")
def ai_personalize(body: schemas.PersonalizeIn, ctx: AuthContext = Depends(require_auth)):
    recipient = SimpleNamespace(name=body.name, company=body.company, job_title=body.job_title)
    text = personalize(
        body.template,
        recipient,
        use_ai=True,
        tone=body.tone,
        max_length=body.max_length,
        message_type=body.message_type,
    )
    return {"message": text}

@app.post("/ai/transcribe")
def ai_transcribe(file: UploadFile = File(...), ctx: AuthContext = Depends(require_auth)):
    file.file.seek(0, 2)
    size = file.file.tell()
    file.file.seek(0)
    text = llm.transcribe(file.file, file.filename or "audio.webm", size)
    return {"text": text}

### Viral posts

@app.get("/viral-posts")
def get_viral_posts(keyword: Optional[str] = None, limit: int = 50, ctx: AuthContext = Depends(require_auth)):
    return [schemas.viral_post_out(v) for v in list_viral_posts(ctx.db, keyword, limit)]

@app.post("/viral-posts/search")
def search_viral_posts(body: schemas.ViralSearchIn, ctx: AuthContext = Depends(require_auth)):
    celery_client.send_task(VIRAL_POSTS_TASK, kwargs={"keyword": body.keyword, "total_posts": body.total_posts})
    return {"success": True, "queued": True}

### Webhooks

@app.post("/webhooks/unipile")
def unipile_webhook(
    payload: dict,
    unipile_auth: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
):
    if settings.unipile_webhook_secret and unipile_auth != settings.unipile_webhook_secret:
        raise AuthenticationError("Unauthorized")
    return handle_unipile_event(db, payload)

### Cron

@app.post("/cron/process-scheduled-posts")
def cron_process_scheduled_posts(_: str = Depends(require_cron), db: Session = Depends(get_db)):
    return run_sweep(db)

@app.post("/cron/execute-campaigns")
def cron_execute_campaigns(_: str = Depends(require_cron), db: Session = Depends(get_db)):
    return runner.execute_campaigns(db)

@app.post("/cron/check-replies")
def cron_check_replies(_: str = Depends(require_cron), db: Session = Depends(get_db)):
    return runner.check_replies(db)

@app.post("/cron/sms-reminders")
def cron_sms_reminders(body: schemas.ReminderIn, _: str = Depends(require_cron), db: Session = Depends(get_db)):
    return send_approval_reminders(db, dry_run=body.dry_run)
