from __future__ import annotations

from typing import Any, Dict, List, Optional

from scriib.agents.http import request_json
from scriib.core.errors import IntegrationError
from scriib.db_models import SocialAccount
from scriib.settings import settings

LINKEDIN_BASE = "https://api.linkedin.com/v2"


class LinkedInPublishError(IntegrationError):
    service = "linkedin"


def _headers(access_token: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {access_token}",
        "X-Restli-Protocol-Version": "2.0.0",
        "LinkedIn-Version": settings.linkedin_api_version,
        "Content-Type": "application/json",
    }


def build_share(author_id: str, content: str, media_urls: Optional[List[str]] = None) -> Dict[str, Any]:
    share: Dict[str, Any] = {
        "shareCommentary": {"text": content},
        "shareMediaCategory": "NONE",
    }
    if media_urls:
        share["shareMediaCategory"] = "ARTICLE"
        share["media"] = [{"status": "READY", "originalUrl": url} for url in media_urls[:1]]

    return {
        "author": f"urn:li:person:{author_id}",
        "lifecycleState": "PUBLISHED",
        "specificContent": {"com.linkedin.ugc.ShareContent": share},
        "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
    }


def publish(content: str, account: SocialAccount, media_urls: Optional[List[str]] = None) -> Dict[str, Any]:
    if not account.access_token or not account.platform_user_id:
        raise LinkedInPublishError("LinkedIn account is missing credentials", kind="payload")

    data = request_json(
        LinkedInPublishError,
        "POST",
        f"{LINKEDIN_BASE}/ugcPosts",
        headers=_headers(account.access_token),
        json=build_share(account.platform_user_id, content, media_urls),
    )
    return {"platform": "linkedin", "id": data.get("id") if isinstance(data, dict) else None}
