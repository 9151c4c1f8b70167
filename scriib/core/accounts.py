"""Connected accounts: publishing credentials and Unipile outreach accounts."""
from __future__ import annotations

import uuid
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from scriib.core.errors import Conflict, NotFound, ValidationError
from scriib.db_models import Campaign, CampaignStatus, LinkedInOutreachAccount, Platform, SocialAccount

log = structlog.get_logger(__name__)


def upsert_social_account(
    db: Session,
    user_id: uuid.UUID,
    platform: str,
    access_token: str,
    platform_user_id: Optional[str] = None,
    screen_name: Optional[str] = None,
) -> SocialAccount:
    try:
        platform_enum = Platform(platform)
    except ValueError:
        raise ValidationError(f"Unsupported platform: {platform}")
    if not access_token:
        raise ValidationError("access_token is required")

    account = (
        db.query(SocialAccount)
        .filter(SocialAccount.user_id == user_id, SocialAccount.platform == platform_enum)
        .first()
    )
    if not account:
        account = SocialAccount(user_id=user_id, platform=platform_enum)
        db.add(account)

    account.access_token = access_token
    account.platform_user_id = platform_user_id
    account.screen_name = screen_name
    db.commit()
    db.refresh(account)

    log.info("social_account_connected", user_id=str(user_id), platform=platform_enum.value)
    return account


def list_social_accounts(db: Session, user_id: uuid.UUID) -> List[SocialAccount]:
    return db.query(SocialAccount).filter(SocialAccount.user_id == user_id).all()


def delete_social_account(db: Session, user_id: uuid.UUID, account_id: int) -> None:
    account = db.query(SocialAccount).filter(SocialAccount.id == account_id, SocialAccount.user_id == user_id).first()
    if not account:
        raise NotFound("Account not found")
    db.delete(account)
    db.commit()


def add_outreach_account(db: Session, user_id: uuid.UUID, unipile_account_id: str, account_name: Optional[str] = None) -> LinkedInOutreachAccount:
    if not unipile_account_id:
        raise ValidationError("unipile_account_id is required")

    existing = (
        db.query(LinkedInOutreachAccount)
        .filter(LinkedInOutreachAccount.unipile_account_id == unipile_account_id)
        .first()
    )
    if existing and existing.user_id != user_id:
        raise Conflict("This LinkedIn account is connected to another user")
    if existing:
        existing.is_active = True
        if account_name:
            existing.account_name = account_name
        db.commit()
        db.refresh(existing)
        return existing

    account = LinkedInOutreachAccount(
        user_id=user_id, unipile_account_id=unipile_account_id, account_name=account_name, is_active=True
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    log.info("outreach_account_connected", user_id=str(user_id), account_id=account.id)
    return account


def list_outreach_accounts(db: Session, user_id: uuid.UUID) -> List[LinkedInOutreachAccount]:
    return db.query(LinkedInOutreachAccount).filter(LinkedInOutreachAccount.user_id == user_id).all()


def deactivate_outreach_account(db: Session, user_id: uuid.UUID, account_id: int) -> LinkedInOutreachAccount:
    account = (
        db.query(LinkedInOutreachAccount)
        .filter(LinkedInOutreachAccount.id == account_id, LinkedInOutreachAccount.user_id == user_id)
        .first()
    )
    if not account:
        raise NotFound("LinkedIn account not found")

    in_use = (
        db.query(Campaign.id)
        .filter(Campaign.linkedin_account_id == account.id, Campaign.status == CampaignStatus.active)
        .first()
    )
    if in_use:
        raise ValidationError("Pause or stop campaigns using this account first")

    account.is_active = False
    db.commit()
    db.refresh(account)
    return account
