from __future__ import annotations

import logging
import os
from functools import lru_cache

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
REDIS_CONNECT_TIMEOUT = float(os.getenv("REDIS_CONNECT_TIMEOUT", "1.0"))


@lru_cache(maxsize=1)
def get_redis() -> Redis:
    return Redis.from_url(
        REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=REDIS_CONNECT_TIMEOUT,
        socket_timeout=REDIS_CONNECT_TIMEOUT,
    )


def check_redis_ready() -> bool:
    try:
        return bool(get_redis().ping())
    except RedisError as exc:
        logger.warning("redis readiness probe failed: %s", exc)
        return False
