"""Outreach guardrails: global kill switch + hourly cap on outbound LinkedIn actions."""
import time
from typing import Optional

import redis

from scriib.settings import settings

_redis: Optional[redis.Redis] = None

def get_redis() -> redis.Redis:
    global _redis
    if _redis is None:
        _redis = redis.Redis.from_url(settings.redis_url)
    return _redis

def _bucket_key() -> str:
    hour_bucket = int(time.time() // 3600)
    return f"scriib:outreach_actions:{hour_bucket}"

def guardrails_ok(r: Optional[redis.Redis] = None, n: int = 1) -> bool:
    if settings.kill_switch:
        return False
    if r is None:
        r = get_redis()
    count = r.get(_bucket_key())
    if count and int(count) + n > settings.max_actions_per_hour:
        return False
    return True

def increment_action_count(n: int = 1, r: Optional[redis.Redis] = None) -> int:
    if r is None:
        r = get_redis()
    key = _bucket_key()
    total = r.incrby(key, n)
    r.expire(key, 7200)
    return int(total)
