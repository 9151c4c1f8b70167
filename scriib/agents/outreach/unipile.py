"""Unipile API client (LinkedIn accounts, invitations, chats)."""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from scriib.agents.http import request_json
from scriib.core.errors import IntegrationError
from scriib.settings import settings

PROFILE_ID_RE = re.compile(r"linkedin\.com/in/([^/?#\s]+)", re.IGNORECASE)


class UnipileError(IntegrationError):
    service = "unipile"


def public_identifier(profile_url: Optional[str]) -> Optional[str]:
    """linkedin.com/in/<id>/ -> <id>"""
    if not profile_url:
        return None
    m = PROFILE_ID_RE.search(profile_url)
    return m.group(1) if m else None


class UnipileClient:
    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.unipile_api_key
        self.base_url = (base_url or settings.unipile_base_url).rstrip("/")

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise UnipileError("UNIPILE_API_KEY is not set", kind="network")
        return {"X-API-KEY": self.api_key, "accept": "application/json"}

    def _call(self, method: str, path: str, **kwargs) -> Any:
        return request_json(UnipileError, method, f"{self.base_url}{path}", headers=self._headers(), **kwargs)

    ### Accounts

    def list_accounts(self) -> List[Dict[str, Any]]:
        data = self._call("GET", "/accounts")
        return data.get("items", []) if isinstance(data, dict) else data

    def get_account(self, account_id: str) -> Dict[str, Any]:
        return self._call("GET", f"/accounts/{account_id}")

    def create_hosted_auth_link(self, notify_url: str, success_url: str, name: str, expires_in_hours: int = 1) -> str:
        expires = datetime.now(timezone.utc) + timedelta(hours=expires_in_hours)
        data = self._call(
            "POST",
            "/hosted/accounts/link",
            json={
                "type": "create",
                "providers": ["LINKEDIN"],
                "api_url": self.base_url.rsplit("/api/", 1)[0],
                "expiresOn": expires.strftime("%Y-%m-%dT%H:%M:%S.000Z"),
                "notify_url": notify_url,
                "success_redirect_url": success_url,
                "name": name,
            },
        )
        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            raise UnipileError("hosted auth response had no url", kind="payload", payload=data)
        return url

    ### Profiles + invitations

    def get_linkedin_profile(self, account_id: str, identifier: str) -> Dict[str, Any]:
        return self._call("GET", f"/users/{identifier}", params={"account_id": account_id})

    def send_connection_request(self, account_id: str, provider_id: str, message: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"account_id": account_id, "provider_id": provider_id}
        if message:
            # LinkedIn caps invitation notes at 300 characters
            payload["message"] = message[:300]
        return self._call("POST", "/users/invite", json=payload)

    ### Chats

    def start_chat(self, account_id: str, provider_id: str, text: str) -> Dict[str, Any]:
        return self._call(
            "POST",
            "/chats",
            json={"account_id": account_id, "attendees_ids": [provider_id], "text": text},
        )

    def send_message(self, chat_id: str, text: str) -> Dict[str, Any]:
        return self._call("POST", f"/chats/{chat_id}/messages", json={"text": text})

    def get_chat_messages(self, chat_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        data = self._call("GET", f"/chats/{chat_id}/messages", params={"limit": limit})
        return data.get("items", []) if isinstance(data, dict) else data
