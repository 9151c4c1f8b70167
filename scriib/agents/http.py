from __future__ import annotations

from typing import Any, Dict, Optional, Type

import requests

from scriib.core.errors import IntegrationError
from scriib.settings import settings


def request_json(
    error_cls: Type[IntegrationError],
    method: str,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json: Any = None,
    timeout: Optional[int] = None,
) -> Any:
    """Single-attempt JSON call. Every failure surfaces as error_cls with kind network/http/payload."""
    try:
        r = requests.request(
            method,
            url,
            headers=headers,
            params=params,
            json=json,
            timeout=timeout or settings.http_timeout_seconds,
        )
    except requests.RequestException as e:
        raise error_cls(str(e), kind="network") from e

    if r.status_code >= 400:
        try:
            body = r.json()
        except ValueError:
            body = r.text[:500]
        message = body
        if isinstance(body, dict):
            message = body.get("message") or body.get("detail") or body.get("title")
        raise error_cls(str(message or r.reason), kind="http", status_code=r.status_code, payload=body)

    if not r.content:
        return {}
    try:
        data = r.json()
    except ValueError as e:
        raise error_cls("response was not JSON", kind="payload", status_code=r.status_code) from e
    if not isinstance(data, (dict, list)):
        raise error_cls("unexpected response shape", kind="payload", status_code=r.status_code, payload=data)
    return data
