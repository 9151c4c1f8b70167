from __future__ import annotations

from typing import BinaryIO, Optional

import anthropic
import openai
import structlog
from anthropic import Anthropic
from openai import OpenAI

from scriib.core.errors import IntegrationError, ValidationError
from scriib.settings import settings

log = structlog.get_logger(__name__)

MAX_AUDIO_BYTES = 25 * 1024 * 1024  # whisper upload limit

POST_SYSTEM = """You write social media posts for busy professionals.
Rules:
- Sound like a person, not a brand.
- Short paragraphs, no hashtag spam (max 3).
- No invented facts or statistics.
Return ONLY the post text.
"""


class OpenAIError(IntegrationError):
    service = "openai"


class AnthropicError(IntegrationError):
    service = "anthropic"


def _openai() -> OpenAI:
    if not settings.openai_api_key:
        raise OpenAIError("OPENAI_API_KEY is not set", kind="network")
    return OpenAI(api_key=settings.openai_api_key, timeout=settings.http_timeout_seconds * 4)


def _anthropic() -> Anthropic:
    if not settings.anthropic_api_key:
        raise AnthropicError("ANTHROPIC_API_KEY is not set", kind="network")
    return Anthropic(api_key=settings.anthropic_api_key, timeout=settings.http_timeout_seconds * 4)


### OpenAI

def _chat(prompt: str, system: Optional[str], temperature: float, client: Optional[OpenAI] = None) -> str:
    client = client or _openai()
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    try:
        resp = client.chat.completions.create(
            model=settings.openai_model,
            messages=messages,
            temperature=temperature,
        )
    except openai.APIConnectionError as e:
        raise OpenAIError(str(e), kind="network") from e
    except openai.APIStatusError as e:
        raise OpenAIError(e.message, kind="http", status_code=e.status_code) from e

    if not resp.choices or not resp.choices[0].message.content:
        raise OpenAIError("empty completion", kind="payload")
    return resp.choices[0].message.content.strip()


def generate_post(
    topic: str,
    platform: str = "linkedin",
    tone: str = "professional",
    max_length: Optional[int] = None,
    client: Optional[OpenAI] = None,
) -> str:
    if not topic or not topic.strip():
        raise ValidationError("A topic or prompt is required")

    prompt = f"Write a {tone} {platform} post about:\n{topic.strip()}"
    if max_length:
        prompt += f"\n\nKeep it under {max_length} characters."
    text = _chat(prompt, POST_SYSTEM, 0.7, client=client)
    log.info("llm_post_generated", platform=platform, chars=len(text))
    return text


def transcribe(audio: BinaryIO, filename: str, size: int, client: Optional[OpenAI] = None) -> str:
    if size <= 0:
        raise ValidationError("No audio file provided")
    if size > MAX_AUDIO_BYTES:
        raise ValidationError("File too large. Maximum size is 25MB.")

    client = client or _openai()
    try:
        resp = client.audio.transcriptions.create(model="whisper-1", file=(filename, audio))
    except openai.APIConnectionError as e:
        raise OpenAIError(str(e), kind="network") from e
    except openai.APIStatusError as e:
        raise OpenAIError(e.message, kind="http", status_code=e.status_code) from e
    return (resp.text or "").strip()


### Anthropic

def _message(system: str, prompt: str, temperature: float, client: Optional[Anthropic] = None) -> str:
    client = client or _anthropic()
    try:
        resp = client.messages.create(
            model=settings.anthropic_model,
            max_tokens=1024,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIConnectionError as e:
        raise AnthropicError(str(e), kind="network") from e
    except anthropic.APIStatusError as e:
        raise AnthropicError(e.message, kind="http", status_code=e.status_code) from e

    text = "".join(block.text for block in resp.content if getattr(block, "type", None) == "text").strip()
    if not text:
        raise AnthropicError("empty message", kind="payload")
    return text


def _personalize_system(tone: str, max_length: int, message_type: str) -> str:
    kind = "LinkedIn connection request note" if message_type == "connection" else "LinkedIn follow-up message"
    return (
        f"You personalize a {kind}.\n"
        f"Tone: {tone}.\n"
        f"Hard limit: {max_length} characters.\n"
        "Keep the sender's intent, mention something specific about the recipient when the details allow it, "
        "never invent facts, no emojis, no placeholders.\n"
        "Return ONLY the message text."
    )


def personalize_message(
    template: str,
    recipient: dict,
    tone: str = "professional",
    max_length: int = 200,
    message_type: str = "connection",
    client: Optional[Anthropic] = None,
) -> str:
    client = client or _anthropic()
    details = "\n".join(f"- {k}: {v}" for k, v in recipient.items() if v)
    prompt = f"Message template:\n{template}\n\nRecipient:\n{details or '- (no details)'}"

    text = _message(_personalize_system(tone, max_length, message_type), prompt, 0.7, client=client)
    if len(text) > max_length:
        text = _message(
            f"Shorten the message to at most {max_length} characters. Keep the meaning. Return ONLY the message text.",
            text,
            0.3,
            client=client,
        )
    return text[:max_length]
