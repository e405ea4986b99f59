from __future__ import annotations

import hashlib
import json
import logging
import os
from typing import Any

from redis.exceptions import RedisError

from app.domain.models import EventEnvelope
from app.infra import redis_state
from app.infra.events import event_bus

logger = logging.getLogger(__name__)

CACHE_ENABLED = os.getenv("PLAN_CACHE_ENABLED", "true").lower() in {"1", "true", "yes"}
CATALOG_TTL_SECONDS = int(os.getenv("PLAN_CACHE_CATALOG_TTL_SECONDS", "300"))
ACTIVE_SUBSCRIPTION_TTL_SECONDS = int(os.getenv("PLAN_CACHE_ACTIVE_SUBSCRIPTION_TTL_SECONDS", "300"))

CATALOG_PREFIX = "plans:catalog"
CATALOG_GENERATION_KEY = "plans:catalog_generation"
CATALOG_EVENT_PREFIXES = ("plan.", "plan_type.", "seat_limit.")
SUBSCRIPTION_EVENT_PREFIX = "subscription."


def catalog_key(part: str, generation: int) -> str:
    digest = hashlib.sha1(part.encode("utf-8")).hexdigest()
    return f"{CATALOG_PREFIX}:{generation}:{digest}"


def active_subscription_key(company_id: int) -> str:
    return f"company:{company_id}:active_subscription"


class PlanCache:
    """Read-through cache for catalog pages and active subscription lookups.

    Every failure is logged and treated as a miss so callers fall back to
    storage. Keys are dropped by ``handle_event`` once a change commits.
    """

    def __init__(self, enabled: bool = CACHE_ENABLED) -> None:
        self.enabled = enabled

    def _get(self, key: str) -> str | None:
        if not self.enabled:
            return None
        try:
            value = redis_state.get_redis().get(key)
        except RedisError as exc:
            logger.warning("cache read failed for %s: %s", key, exc)
            return None
        return value if isinstance(value, str) else None

    def _set(self, key: str, value: str, ttl: int) -> None:
        if not self.enabled:
            return
        try:
            redis_state.get_redis().set(key, value, ex=ttl)
        except RedisError as exc:
            logger.warning("cache write failed for %s: %s", key, exc)

    def _delete(self, *keys: str) -> None:
        if not self.enabled or not keys:
            return
        try:
            redis_state.get_redis().delete(*keys)
        except RedisError as exc:
            logger.warning("cache delete failed for %s: %s", ", ".join(keys), exc)

    def _delete_pattern(self, pattern: str) -> None:
        if not self.enabled:
            return
        try:
            client = redis_state.get_redis()
            keys = list(client.scan_iter(match=pattern))
            if keys:
                client.delete(*keys)
        except RedisError as exc:
            logger.warning("cache pattern delete failed for %s: %s", pattern, exc)

    def catalog_generation(self) -> int | None:
        """Current catalog generation, or None when pages must not be cached.

        Read it before querying storage and store the page under it; a write
        that commits in between bumps the generation, so the stale page is
        never served.
        """
        if not self.enabled:
            return None
        try:
            raw = redis_state.get_redis().get(CATALOG_GENERATION_KEY)
        except RedisError as exc:
            logger.warning("cache read failed for %s: %s", CATALOG_GENERATION_KEY, exc)
            return None
        if raw is None:
            return 0
        return int(raw) if isinstance(raw, str) and raw.isdigit() else None

    def get_catalog(self, part: str, generation: int) -> list[dict[str, Any]] | None:
        raw = self._get(catalog_key(part, generation))
        if raw is None:
            return None
        try:
            decoded = json.loads(raw)
        except ValueError:
            logger.warning("discarding undecodable catalog cache entry")
            return None
        return decoded if isinstance(decoded, list) else None

    def set_catalog(self, part: str, generation: int, items: list[dict[str, Any]]) -> None:
        self._set(catalog_key(part, generation), json.dumps(items), CATALOG_TTL_SECONDS)

    def get_active_subscription_id(self, company_id: int) -> int | None:
        raw = self._get(active_subscription_key(company_id))
        if raw is None or not raw.isdigit():
            return None
        return int(raw)

    def set_active_subscription_id(self, company_id: int, subscription_id: int) -> None:
        self._set(active_subscription_key(company_id), str(subscription_id), ACTIVE_SUBSCRIPTION_TTL_SECONDS)

    def invalidate_catalog(self) -> None:
        if self.enabled:
            try:
                redis_state.get_redis().incr(CATALOG_GENERATION_KEY)
            except RedisError as exc:
                logger.warning("cache generation bump failed: %s", exc)
        self._delete_pattern(f"{CATALOG_PREFIX}:*")

    def invalidate_company(self, company_id: int) -> None:
        self._delete(active_subscription_key(company_id))

    def handle_event(self, event: EventEnvelope) -> None:
        if event.event_type.startswith(CATALOG_EVENT_PREFIXES):
            self.invalidate_catalog()
        if event.event_type.startswith(SUBSCRIPTION_EVENT_PREFIX) and event.company_id is not None:
            self.invalidate_company(event.company_id)


plan_cache = PlanCache()
event_bus.subscribe("*", plan_cache.handle_event)
