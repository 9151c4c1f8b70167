"""baseline

Revision ID: 4c1e7a9b2d30
Revises:
Create Date: 2026-10-19 09:12:44.501827

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4c1e7a9b2d30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


post_status = postgresql.ENUM(
    "draft", "pending_approval", "scheduled", "publishing", "published", "failed", "rejected", "archived",
    name="poststatus", create_type=False,
)
platform = postgresql.ENUM("linkedin", "twitter", name="platform", create_type=False)
campaign_status = postgresql.ENUM("draft", "active", "paused", "stopped", name="campaignstatus", create_type=False)
campaign_contact_status = postgresql.ENUM(
    "pending", "connection_sent", "connected", "follow_up_sent", "replied", "failed",
    name="campaigncontactstatus", create_type=False,
)
enrichment_status = postgresql.ENUM("none", "pending", "enriched", "failed", name="enrichmentstatus", create_type=False)

ENUMS = (post_status, platform, campaign_status, campaign_contact_status, enrichment_status)


def upgrade() -> None:
    bind = op.get_bind()
    for e in ENUMS:
        e.create(bind, checkfirst=True)

    op.create_table(
        "app_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("level", sa.String(length=16), nullable=False),
        sa.Column("logger", sa.String(length=128), nullable=True),
        sa.Column("service", sa.String(length=32), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("task_id", sa.String(length=64), nullable=True),
        sa.Column("event", sa.String(length=128), nullable=True),
        sa.Column("data", postgresql.JSONB(), nullable=True),
    )
    for col in ("id", "level", "logger", "service", "request_id", "task_id", "event"):
        op.create_index(f"ix_app_logs_{col}", "app_logs", [col])

    op.create_table(
        "profiles",
        sa.Column("user_id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("sms_opt_in", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"])

    op.create_table(
        "user_mappings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_user_mappings_external_id", "user_mappings", ["external_id"], unique=True)

    op.create_table(
        "social_accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False),
        sa.Column("platform", platform, nullable=False),
        sa.Column("platform_user_id", sa.String(length=128), nullable=True),
        sa.Column("screen_name", sa.String(length=128), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "platform", name="uq_social_accounts_user_platform"),
    )
    op.create_index("ix_social_accounts_user_id", "social_accounts", ["user_id"])

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=True),
        sa.Column("ghostwriter_id", sa.Uuid(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", post_status, nullable=False, server_default="draft"),
        sa.Column("scheduled_time", sa.DateTime(), nullable=True),
        sa.Column("platforms", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("media_urls", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status_before_archive", post_status, nullable=True),
        sa.Column("rejection_reason", sa.String(length=500), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("edited_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    for col in ("user_id", "approver_id", "ghostwriter_id", "status", "scheduled_time"):
        op.create_index(f"ix_posts_{col}", "posts", [col])

    op.create_table(
        "ghostwriter_approver_links",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ghostwriter_id", sa.Uuid(), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("ghostwriter_id", "approver_id", name="uq_ghostwriter_approver"),
    )
    op.create_index("ix_ghostwriter_approver_links_ghostwriter_id", "ghostwriter_approver_links", ["ghostwriter_id"])
    op.create_index("ix_ghostwriter_approver_links_approver_id", "ghostwriter_approver_links", ["approver_id"])

    op.create_table(
        "linkedin_outreach_accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False),
        sa.Column("account_name", sa.String(length=255), nullable=True),
        sa.Column("unipile_account_id", sa.String(length=128), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_linkedin_outreach_accounts_user_id", "linkedin_outreach_accounts", ["user_id"])

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", campaign_status, nullable=False, server_default="draft"),
        sa.Column("connection_message", sa.Text(), nullable=True),
        sa.Column("follow_up_message", sa.Text(), nullable=True),
        sa.Column("follow_up_delay_days", sa.Integer(), nullable=False, server_default=sa.text("3")),
        sa.Column("daily_connection_limit", sa.Integer(), nullable=False, server_default=sa.text("20")),
        sa.Column("use_ai_personalization", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ai_tone", sa.String(length=32), nullable=False, server_default="professional"),
        sa.Column("ai_max_length", sa.Integer(), nullable=False, server_default=sa.text("200")),
        sa.Column(
            "linkedin_account_id",
            sa.Integer(),
            sa.ForeignKey("linkedin_outreach_accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("total_contacts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("connections_sent", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("connections_accepted", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("messages_sent", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("replies_received", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_campaigns_user_id", "campaigns", ["user_id"])
    op.create_index("ix_campaigns_status", "campaigns", ["status"])

    op.create_table(
        "contacts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("subtitle", sa.String(length=500), nullable=True),
        sa.Column("profile_url", sa.Text(), nullable=True),
        sa.Column("job_title", sa.String(length=255), nullable=True),
        sa.Column("company", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("engagement_type", sa.String(length=32), nullable=False, server_default="manual"),
        sa.Column("post_url", sa.Text(), nullable=True),
        sa.Column("enrichment_status", enrichment_status, nullable=False, server_default="none"),
        sa.Column("enriched_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "profile_url", name="uq_contacts_user_profile_url"),
    )
    op.create_index("ix_contacts_user_id", "contacts", ["user_id"])

    op.create_table(
        "campaign_contacts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("campaign_id", sa.Integer(), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("contact_id", sa.Integer(), sa.ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", campaign_contact_status, nullable=False, server_default="pending"),
        sa.Column("provider_id", sa.String(length=128), nullable=True),
        sa.Column("chat_id", sa.String(length=128), nullable=True),
        sa.Column("personalized_message", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("connection_sent_at", sa.DateTime(), nullable=True),
        sa.Column("connection_accepted_at", sa.DateTime(), nullable=True),
        sa.Column("follow_up_sent_at", sa.DateTime(), nullable=True),
        sa.Column("reply_received_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("campaign_id", "contact_id", name="uq_campaign_contacts_campaign_contact"),
    )
    op.create_index("ix_campaign_contacts_campaign_id", "campaign_contacts", ["campaign_id"])
    op.create_index("ix_campaign_contacts_contact_id", "campaign_contacts", ["contact_id"])
    op.create_index("ix_campaign_contacts_status", "campaign_contacts", ["status"])

    op.create_table(
        "campaign_activities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("campaign_id", sa.Integer(), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("contact_id", sa.Integer(), nullable=True),
        sa.Column("activity_type", sa.String(length=64), nullable=False),
        sa.Column("details", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_campaign_activities_campaign_id", "campaign_activities", ["campaign_id"])
    op.create_index("ix_campaign_activities_activity_type", "campaign_activities", ["activity_type"])

    op.create_table(
        "campaign_daily_stats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("campaign_id", sa.Integer(), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("connections_sent", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("follow_ups_sent", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("campaign_id", "day", name="uq_campaign_daily_stats_day"),
    )

    op.create_table(
        "contact_notes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("contact_id", sa.Integer(), sa.ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_contact_notes_contact_id", "contact_notes", ["contact_id"])

    op.create_table(
        "contact_activities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("contact_id", sa.Integer(), sa.ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("activity_type", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("details", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_contact_activities_contact_id", "contact_activities", ["contact_id"])

    op.create_table(
        "viral_posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_url", sa.String(length=512), nullable=False, unique=True),
        sa.Column("keyword", sa.String(length=255), nullable=False),
        sa.Column("author_name", sa.String(length=255), nullable=True),
        sa.Column("author_url", sa.Text(), nullable=True),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("likes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("comments", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reposts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("engagement_score", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("posted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_viral_posts_keyword", "viral_posts", ["keyword"])
    op.create_index("ix_viral_posts_engagement_score", "viral_posts", ["engagement_score"])

    op.create_table(
        "viral_post_reports",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("keyword", sa.String(length=255), nullable=False),
        sa.Column("report", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_viral_post_reports_keyword", "viral_post_reports", ["keyword"])


def downgrade() -> None:
    for table in (
        "viral_post_reports",
        "viral_posts",
        "contact_activities",
        "contact_notes",
        "campaign_daily_stats",
        "campaign_activities",
        "campaign_contacts",
        "contacts",
        "campaigns",
        "linkedin_outreach_accounts",
        "ghostwriter_approver_links",
        "posts",
        "social_accounts",
        "user_mappings",
        "profiles",
        "app_logs",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for e in reversed(ENUMS):
        e.drop(bind, checkfirst=True)
