"""Cached access to completed orders, one cache entry per ordering mode."""

import logging
from typing import Callable

from donation_leaderboard.cache import CacheStore
from donation_leaderboard.errors import CacheUnavailable
from donation_leaderboard.schemas import ORDER_BY_MODES, LeaderboardSettings, OrderBy, OrderRecord

logger = logging.getLogger(__name__)

COMPLETED = "completed"

OrderSource = Callable[[int, OrderBy], list[OrderRecord]]


def cache_key(order_by: OrderBy) -> str:
    return f"leaderboard_orders_{order_by}"


def normalize_status(status: str | None) -> str:
    value = (status or "").strip().lower()
    return value[3:] if value.startswith("wc-") else value


def _sort_key(order_by: OrderBy) -> Callable[[OrderRecord], object]:
    if order_by == "total":
        return lambda record: record.total
    return lambda record: record.completed_at


class OrderCacheLoader:
    """Serves completed orders from the cache, refilling it from the order store on a miss."""

    def __init__(
        self,
        source: OrderSource,
        cache: CacheStore,
        settings: LeaderboardSettings,
    ) -> None:
        self._source = source
        self._cache = cache
        self._settings = settings

    def _fetch(self, order_by: OrderBy) -> tuple[OrderRecord, ...]:
        records = self._source(self._settings.max_orders, order_by)
        records = sorted(records, key=_sort_key(order_by), reverse=True)
        return tuple(records[: self._settings.max_orders])

    def get_orders(self, order_by: OrderBy) -> list[OrderRecord]:
        """Completed orders sorted descending by date or total.

        StoreUnavailable from the source propagates; a failing cache only
        costs the caching.
        """
        key = cache_key(order_by)
        try:
            cached = self._cache.get(key)
        except CacheUnavailable as e:
            logger.warning("Cache read failed for %s, querying order store directly: %s", key, e)
            return list(self._fetch(order_by))

        if cached is not None:
            logger.debug("Cache hit for %s (%d orders)", key, len(cached))
            return list(cached)

        records = self._fetch(order_by)
        logger.info("Cache miss for %s, loaded %d orders", key, len(records))
        try:
            self._cache.set(key, records, self._settings.cache_ttl_seconds)
        except CacheUnavailable as e:
            logger.warning("Cache write failed for %s: %s", key, e)
        return list(records)

    def on_order_status_changed(self, order_id: int, old_status: str, new_status: str, order=None) -> list[str]:
        """Drop cached lists that are close to expiry when an order enters or leaves "completed".

        Returns the deleted cache keys.
        """
        old_completed = normalize_status(old_status) == COMPLETED
        new_completed = normalize_status(new_status) == COMPLETED
        if old_completed == new_completed:
            return []

        deleted = []
        for order_by in ORDER_BY_MODES:
            key = cache_key(order_by)
            try:
                remaining = self._cache.remaining_ttl(key)
                if remaining is not None and remaining < self._settings.refresh_window_seconds:
                    self._cache.delete(key)
                    deleted.append(key)
            except CacheUnavailable as e:
                logger.warning("Cache invalidation failed for %s: %s", key, e)

        if deleted:
            logger.info(
                "Order %s moved %s -> %s, invalidated %s", order_id, old_status, new_status, ", ".join(deleted)
            )
        return deleted
