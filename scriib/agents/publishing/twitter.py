from __future__ import annotations

from typing import Any, Dict, List, Optional

from scriib.agents.http import request_json
from scriib.core.errors import IntegrationError
from scriib.db_models import SocialAccount

TWITTER_BASE = "https://api.twitter.com/2"
MAX_TWEET_CHARS = 280


class TwitterPublishError(IntegrationError):
    service = "twitter"


def publish(content: str, account: SocialAccount, media_urls: Optional[List[str]] = None) -> Dict[str, Any]:
    if not account.access_token:
        raise TwitterPublishError("Twitter account is missing credentials", kind="payload")

    text = content
    if media_urls:
        text = f"{content}\n{media_urls[0]}"
    if len(text) > MAX_TWEET_CHARS:
        raise TwitterPublishError(f"Tweet exceeds {MAX_TWEET_CHARS} characters", kind="payload")

    data = request_json(
        TwitterPublishError,
        "POST",
        f"{TWITTER_BASE}/tweets",
        headers={"Authorization": f"Bearer {account.access_token}"},
        json={"text": text},
    )
    tweet = data.get("data") if isinstance(data, dict) else None
    if not tweet or not tweet.get("id"):
        raise TwitterPublishError("tweet response had no id", kind="payload", payload=data)
    return {"platform": "twitter", "id": tweet["id"]}
