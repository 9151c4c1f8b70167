"""LinkedIn profile enrichment for CRM contacts (Apify profile scraper)."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from scriib.agents import scrape
from scriib.core.contacts import add_activity, apply_enrichment
from scriib.core.errors import NotFound, ValidationError
from scriib.db_models import Contact, EnrichmentStatus
from scriib.settings import settings

log = structlog.get_logger(__name__)

USERNAME_RE = re.compile(r"/in/([^/?\s]+)")


def extract_username(profile_url: str | None) -> str | None:
    if not profile_url:
        return None
    m = USERNAME_RE.search(profile_url)
    return m.group(1) if m else None


def parse_profile(item: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """Current role = first experience entry; headline is the title fallback."""
    experience = item.get("experience") or []
    current = experience[0] if experience and isinstance(experience[0], dict) else {}

    job_title = current.get("title") or current.get("position") or item.get("headline")
    company = current.get("companyName") or current.get("company")
    if isinstance(company, dict):
        company = company.get("name")

    return (job_title or None), (company or None)


def fetch_profile(profile_url: str, client=None, **wait_kwargs) -> Dict[str, Any]:
    username = extract_username(profile_url)
    if not username:
        raise ValidationError("Invalid LinkedIn profile URL")

    items = scrape.run_actor(
        settings.apify_profile_actor,
        {"username": username, "includeEmail": False},
        limit=1,
        client=client,
        **wait_kwargs,
    )
    if not items:
        raise scrape.ApifyError("No profile data returned", kind="payload")
    return items[0]


def enrich_contact(db: Session, contact_id: int, client=None, **wait_kwargs) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id).first()
    if not contact:
        raise NotFound("Contact not found")

    try:
        item = fetch_profile(contact.profile_url, client=client, **wait_kwargs)
    except (scrape.ApifyError, ValidationError) as e:
        contact.enrichment_status = EnrichmentStatus.failed
        add_activity(db, contact, "enrichment_failed", str(e))
        db.commit()
        log.warning("contact_enrichment_failed", contact_id=contact.id, error=str(e))
        raise

    job_title, company = parse_profile(item)
    apply_enrichment(db, contact, job_title, company)
    db.commit()
    db.refresh(contact)

    log.info("contact_enriched", contact_id=contact.id, has_title=bool(job_title), has_company=bool(company))
    return contact
