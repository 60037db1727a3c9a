"""Cache key builders and TTLs."""

from __future__ import annotations

from ..config_constants import CACHE_TTL_PROCESSING, CACHE_TTL_READY


class CacheKeys:
    @staticmethod
    def summary_status(episode_id: str, language: str) -> str:
        return f"summary:status:{episode_id}:{language.lower()}"

    @staticmethod
    def rate_limit(identifier: str) -> str:
        return f"ratelimit:{identifier}"


class CacheTTL:
    PROCESSING = CACHE_TTL_PROCESSING  # something still in flight
    READY = CACHE_TTL_READY
