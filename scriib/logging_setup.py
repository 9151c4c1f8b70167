import logging
import re
from typing import Any, Dict, List, Optional

import structlog
from structlog.contextvars import merge_contextvars

from scriib.settings import settings

SENSITIVE_KEYS = frozenset({
    "password", "secret", "token", "api_key", "access_token", "auth_token",
    "authorization", "cookie", "set-cookie", "x-api-key",
    "cron_secret", "session_secret", "phone_number",
})

# vendor SDKs that log full request lines at INFO
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "urllib3": logging.WARNING,
    "twilio.http_client": logging.WARNING,
    "apify_client": logging.WARNING,
    "openai": logging.WARNING,
    "anthropic": logging.WARNING,
}

_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9\-\._~\+\/]+=*")
REDACTED = "[REDACTED]"


def _is_sensitive(key: Any) -> bool:
    return isinstance(key, str) and key.lower() in SENSITIVE_KEYS


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: (REDACTED if _is_sensitive(k) else _redact(v)) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_redact(x) for x in obj]
    if isinstance(obj, str):
        return _BEARER_RE.sub(r"\1" + REDACTED, obj)
    return obj


def _redact_processor(_, __, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    return _redact(event_dict)


def _event_processors() -> List[Any]:
    """Processors shared by structlog loggers and foreign stdlib records."""
    return [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _install_root_handler(level: int) -> None:
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=_event_processors() + [_redact_processor],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def configure_structured_logging(service_name: str, level_name: Optional[str] = None) -> None:
    """JSON logs for api, worker and beat.

    uvicorn and celery records go through the same root handler as structlog
    events, so every line carries ``service`` and any bound request or task id.
    """
    level = getattr(logging, (level_name or settings.log_level).upper(), logging.INFO)

    _install_root_handler(level)

    structlog.configure(
        processors=_event_processors() + [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _redact_processor,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)
