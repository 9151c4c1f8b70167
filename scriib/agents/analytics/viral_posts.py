"""Viral post discovery.

Searches recent LinkedIn posts for a keyword (Apify posts search actor),
caches them in viral_posts keyed by URL, and stores a small report:
- top posts by engagement
- top authors
- most common hashtags
"""

from __future__ import annotations

import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from scriib.agents import scrape
from scriib.core.errors import ValidationError
from scriib.db_models import ViralPost, ViralPostReport
from scriib.settings import settings

log = structlog.get_logger(__name__)

HASHTAG_RE = re.compile(r"#(\w{2,60})")


def engagement_score(likes: int, comments: int, reposts: int) -> float:
    return float(likes + 2 * comments + 3 * reposts)


def _int(v: Any) -> int:
    try:
        return int(v or 0)
    except (TypeError, ValueError):
        return 0


def _ts(v: Any) -> Optional[datetime]:
    if isinstance(v, (int, float)) and v > 0:
        # epoch milliseconds
        return datetime.fromtimestamp(v / 1000, tz=timezone.utc).replace(tzinfo=None)
    if isinstance(v, str) and v:
        try:
            parsed = datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    return None


def normalize_item(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    url = item.get("post_url") or item.get("url") or item.get("postUrl")
    if not url:
        return None

    author = item.get("author") if isinstance(item.get("author"), dict) else {}
    stats = item.get("stats") if isinstance(item.get("stats"), dict) else {}
    likes = _int(stats.get("total_reactions") or item.get("likes") or item.get("numLikes"))
    comments = _int(stats.get("comments") or item.get("comments") or item.get("numComments"))
    reposts = _int(stats.get("reposts") or item.get("reposts") or item.get("numShares"))

    posted = item.get("posted_at")
    if isinstance(posted, dict):
        posted = posted.get("timestamp") or posted.get("date")

    return {
        "post_url": str(url)[:512],
        "author_name": author.get("name") or item.get("authorName"),
        "author_url": author.get("profile_url") or item.get("authorProfileUrl"),
        "text": item.get("text") or item.get("content"),
        "likes": likes,
        "comments": comments,
        "reposts": reposts,
        "engagement_score": engagement_score(likes, comments, reposts),
        "posted_at": _ts(posted),
    }


def upsert_posts(db: Session, keyword: str, rows: List[Dict[str, Any]]) -> List[ViralPost]:
    saved = []
    for row in rows:
        post = db.query(ViralPost).filter(ViralPost.post_url == row["post_url"]).first()
        if not post:
            post = ViralPost(post_url=row["post_url"], keyword=keyword)
            db.add(post)
        for key, value in row.items():
            if key != "post_url":
                setattr(post, key, value)
        post.keyword = keyword
        saved.append(post)
    db.flush()
    return saved


def build_report(posts: List[Dict[str, Any]]) -> Dict[str, Any]:
    authors = Counter()
    hashtags = Counter()

    for p in posts:
        if p.get("author_name"):
            authors[p["author_name"]] += 1
        for tag in HASHTAG_RE.findall(p.get("text") or ""):
            hashtags[tag.lower()] += 1

    top = sorted(posts, key=lambda p: p.get("engagement_score") or 0, reverse=True)[:10]
    return {
        "top_posts": [
            {"post_url": p["post_url"], "author_name": p.get("author_name"), "engagement_score": p.get("engagement_score")}
            for p in top
        ],
        "top_authors": authors.most_common(10),
        "top_hashtags": hashtags.most_common(15),
        "post_sample": len(posts),
    }


def discover_viral_posts(db: Session, keyword: str, total_posts: int = 50, client=None, **wait_kwargs) -> ViralPostReport:
    keyword = (keyword or "").strip()
    if not keyword:
        raise ValidationError("keyword is required")

    items = scrape.run_actor(
        settings.apify_posts_actor,
        {"keyword": keyword, "sort_type": "date_posted", "date_filter": "past-week", "total_posts": total_posts},
        limit=total_posts,
        client=client,
        **wait_kwargs,
    )
    rows = [r for r in (normalize_item(i) for i in items) if r]
    upsert_posts(db, keyword, rows)

    report = ViralPostReport(keyword=keyword, report=build_report(rows))
    db.add(report)
    db.commit()
    db.refresh(report)

    log.info("viral_posts_discovered", keyword=keyword, fetched=len(items), saved=len(rows))
    return report


def list_viral_posts(db: Session, keyword: Optional[str] = None, limit: int = 50) -> List[ViralPost]:
    q = db.query(ViralPost)
    if keyword:
        q = q.filter(ViralPost.keyword == keyword)
    return q.order_by(ViralPost.engagement_score.desc()).limit(min(max(limit, 1), 200)).all()
