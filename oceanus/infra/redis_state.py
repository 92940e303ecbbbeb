from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from typing import Any

from redis import Redis

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")


@lru_cache(maxsize=1)
def get_redis() -> Redis:
    return Redis.from_url(REDIS_URL, decode_responses=True)


def put_json(key: str, value: dict[str, Any], *, ttl_seconds: int) -> None:
    # one SET carries the whole record and its expiry
    get_redis().set(key, json.dumps(value), ex=max(int(ttl_seconds), 1))


def get_json(key: str) -> dict[str, Any] | None:
    raw = get_redis().get(key)
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode()
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("ignoring non-json value at %s", key)
        return None
    return value if isinstance(value, dict) else None


def delete_keys(*keys: str) -> None:
    if keys:
        get_redis().delete(*keys)


def check_redis_ready() -> bool:
    try:
        return bool(get_redis().ping())
    except Exception:
        logger.warning("redis readiness check failed for %s", REDIS_URL, exc_info=True)
        return False
