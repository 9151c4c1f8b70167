import enum
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    JSON, Column, String, Text, DateTime, Date, Integer, Boolean, Enum, ForeignKey, UniqueConstraint, Float, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, DeclarativeBase
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

class Base(DeclarativeBase):
    pass

class PostStatus(str, enum.Enum):
    draft = "draft"
    pending_approval = "pending_approval"
    scheduled = "scheduled"
    publishing = "publishing"      # claimed by a sweep, side effects in flight
    published = "published"
    failed = "failed"
    rejected = "rejected"
    archived = "archived"

class Platform(str, enum.Enum):
    linkedin = "linkedin"
    twitter = "twitter"

class CampaignStatus(str, enum.Enum):
    draft = "draft"
    active = "active"
    paused = "paused"
    stopped = "stopped"

class CampaignContactStatus(str, enum.Enum):
    pending = "pending"
    connection_sent = "connection_sent"
    connected = "connected"
    follow_up_sent = "follow_up_sent"
    replied = "replied"
    failed = "failed"              # send/lookup error, see error_message

class EnrichmentStatus(str, enum.Enum):
    none = "none"
    pending = "pending"
    enriched = "enriched"
    failed = "failed"

class AppLog(Base):
    __tablename__ = "app_logs"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    level = Column(String(16), nullable=False, index=True)
    logger = Column(String(128), nullable=True, index=True)
    service = Column(String(32), nullable=True, index=True)   # api / worker
    message = Column(Text, nullable=True)

    request_id = Column(String(64), nullable=True, index=True)
    task_id = Column(String(64), nullable=True, index=True)

    event = Column(String(128), nullable=True, index=True)
    data = Column(JSONType, nullable=True)

### Identity

class Profile(Base):
    __tablename__ = "profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=True)
    sms_opt_in: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    mapping = relationship("UserMapping", back_populates="profile", uselist=False, cascade="all, delete-orphan")
    posts = relationship("Post", foreign_keys="Post.user_id", cascade="all, delete-orphan")
    social_accounts = relationship("SocialAccount", cascade="all, delete-orphan")
    outreach_accounts = relationship("LinkedInOutreachAccount", cascade="all, delete-orphan")
    campaigns = relationship("Campaign", cascade="all, delete-orphan")
    contacts = relationship("Contact", cascade="all, delete-orphan")

class UserMapping(Base):
    """External identity-provider subject -> internal user UUID (1:1, immutable)."""
    __tablename__ = "user_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    profile = relationship("Profile", back_populates="mapping")

class SocialAccount(Base):
    __tablename__ = "social_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    platform: Mapped[Platform] = mapped_column(Enum(Platform), nullable=False)
    platform_user_id: Mapped[str] = mapped_column(String(128), nullable=True)
    screen_name: Mapped[str] = mapped_column(String(128), nullable=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "platform", name="uq_social_accounts_user_platform"),)

### Posts

class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    approver_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=True, index=True)
    ghostwriter_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=True, index=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[PostStatus] = mapped_column(Enum(PostStatus), default=PostStatus.draft, nullable=False, index=True)
    scheduled_time: Mapped[datetime] = mapped_column(DateTime, nullable=True, index=True)
    platforms: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)  # {"linkedin": true, ...}
    media_urls: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status_before_archive: Mapped[PostStatus] = mapped_column(Enum(PostStatus), nullable=True)
    rejection_reason: Mapped[str] = mapped_column(String(500), nullable=True)
    error_message: Mapped[str] = mapped_column(Text, nullable=True)
    published_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    claimed_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)  # set when a sweep takes the post

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    edited_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

class GhostwriterApproverLink(Base):
    __tablename__ = "ghostwriter_approver_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ghostwriter_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    approver_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    revoked_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    __table_args__ = (UniqueConstraint("ghostwriter_id", "approver_id", name="uq_ghostwriter_approver"),)

### Outreach

class LinkedInOutreachAccount(Base):
    __tablename__ = "linkedin_outreach_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    account_name: Mapped[str] = mapped_column(String(255), nullable=True)
    unipile_account_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    status: Mapped[CampaignStatus] = mapped_column(Enum(CampaignStatus), default=CampaignStatus.draft, nullable=False, index=True)

    connection_message: Mapped[str] = mapped_column(Text, nullable=True)
    follow_up_message: Mapped[str] = mapped_column(Text, nullable=True)
    follow_up_delay_days: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    daily_connection_limit: Mapped[int] = mapped_column(Integer, default=20, nullable=False)
    use_ai_personalization: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ai_tone: Mapped[str] = mapped_column(String(32), default="professional", nullable=False)
    ai_max_length: Mapped[int] = mapped_column(Integer, default=200, nullable=False)

    linkedin_account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("linkedin_outreach_accounts.id", ondelete="SET NULL"), nullable=True
    )

    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    # rollup, recomputed from campaign_contacts
    total_contacts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    connections_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    connections_accepted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    messages_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    replies_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    linkedin_account = relationship("LinkedInOutreachAccount")
    campaign_contacts = relationship("CampaignContact", back_populates="campaign", cascade="all, delete-orphan")
    activities = relationship("CampaignActivity", cascade="all, delete-orphan")
    daily_stats = relationship("CampaignDailyStat", cascade="all, delete-orphan")

class CampaignContact(Base):
    __tablename__ = "campaign_contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_id: Mapped[int] = mapped_column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[CampaignContactStatus] = mapped_column(
        Enum(CampaignContactStatus), default=CampaignContactStatus.pending, nullable=False, index=True
    )

    provider_id: Mapped[str] = mapped_column(String(128), nullable=True)  # unipile member id
    chat_id: Mapped[str] = mapped_column(String(128), nullable=True)
    personalized_message: Mapped[str] = mapped_column(Text, nullable=True)
    error_message: Mapped[str] = mapped_column(Text, nullable=True)
    follow_up_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    connection_sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    connection_accepted_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    follow_up_sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    reply_received_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    campaign = relationship("Campaign", back_populates="campaign_contacts")
    contact = relationship("Contact", back_populates="campaign_links")

    __table_args__ = (UniqueConstraint("campaign_id", "contact_id", name="uq_campaign_contacts_campaign_contact"),)

class CampaignActivity(Base):
    """Append-only campaign event log."""
    __tablename__ = "campaign_activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_id: Mapped[int] = mapped_column(Integer, nullable=True)
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    details: Mapped[dict] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

class CampaignDailyStat(Base):
    __tablename__ = "campaign_daily_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    day: Mapped[datetime] = mapped_column(Date, nullable=False)
    connections_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    follow_ups_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (UniqueConstraint("campaign_id", "day", name="uq_campaign_daily_stats_day"),)

### CRM

class Contact(Base):
    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subtitle: Mapped[str] = mapped_column(String(500), nullable=True)
    profile_url: Mapped[str] = mapped_column(Text, nullable=True)
    job_title: Mapped[str] = mapped_column(String(255), nullable=True)
    company: Mapped[str] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=True)
    engagement_type: Mapped[str] = mapped_column(String(32), default="manual", nullable=False)  # like / comment / manual
    post_url: Mapped[str] = mapped_column(Text, nullable=True)

    enrichment_status: Mapped[EnrichmentStatus] = mapped_column(
        Enum(EnrichmentStatus), default=EnrichmentStatus.none, nullable=False
    )
    enriched_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    notes = relationship("ContactNote", cascade="all, delete-orphan")
    activities = relationship("ContactActivity", cascade="all, delete-orphan")
    campaign_links = relationship("CampaignContact", back_populates="contact", cascade="all, delete-orphan")

    __table_args__ = (UniqueConstraint("user_id", "profile_url", name="uq_contacts_user_profile_url"),)

class ContactNote(Base):
    __tablename__ = "contact_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contact_id: Mapped[int] = mapped_column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

class ContactActivity(Base):
    __tablename__ = "contact_activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contact_id: Mapped[int] = mapped_column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    details: Mapped[dict] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

### Viral post discovery

class ViralPost(Base):
    __tablename__ = "viral_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_url: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    keyword: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    author_name: Mapped[str] = mapped_column(String(255), nullable=True)
    author_url: Mapped[str] = mapped_column(Text, nullable=True)
    text: Mapped[str] = mapped_column(Text, nullable=True)
    likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comments: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reposts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    engagement_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False, index=True)
    posted_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

class ViralPostReport(Base):
    __tablename__ = "viral_post_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    keyword: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    report: Mapped[dict] = mapped_column(JSONType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
