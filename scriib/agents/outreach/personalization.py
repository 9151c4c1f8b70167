"""Outreach message personalization.

Template tokens ({name}, {first_name}, {company}, {job_title}) are always
available. When a campaign opts into AI personalization the template is
rewritten by the LLM, falling back to plain token replacement if that fails.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

import structlog

from scriib.agents import llm
from scriib.core.errors import IntegrationError

log = structlog.get_logger(__name__)


@dataclass
class PersonalizationContext:
    name: str | None = None
    first_name: str | None = None
    company: str | None = None
    job_title: str | None = None


def build_personalization_context(contact) -> PersonalizationContext:
    name = (getattr(contact, "name", "") or "").strip() or None
    first_name = name.split()[0] if name else None
    return PersonalizationContext(
        name=name,
        first_name=first_name,
        company=(getattr(contact, "company", None) or None),
        job_title=(getattr(contact, "job_title", None) or None),
    )


def fill_template(template: str, ctx: PersonalizationContext) -> str:
    return (
        template.replace("{name}", ctx.name or "there")
        .replace("{first_name}", ctx.first_name or "there")
        .replace("{company}", ctx.company or "your company")
        .replace("{job_title}", ctx.job_title or "your role")
    )


def personalize(
    template: str,
    contact,
    use_ai: bool = False,
    tone: str = "professional",
    max_length: int = 200,
    message_type: str = "connection",
    llm_client=None,
) -> str:
    ctx = build_personalization_context(contact)
    if use_ai:
        try:
            return llm.personalize_message(
                template,
                asdict(ctx),
                tone=tone,
                max_length=max_length,
                message_type=message_type,
                client=llm_client,
            )
        except IntegrationError as e:
            log.warning("personalization_fallback", error=str(e))
    return fill_template(template, ctx)
