from decimal import Decimal

import pytest

from conftest import NOW, FakeClock, make_order
from donation_leaderboard.cache import TTLStore
from donation_leaderboard.errors import CacheUnavailable, StoreUnavailable
from donation_leaderboard.loader import OrderCacheLoader, cache_key, normalize_status
from donation_leaderboard.schemas import LeaderboardSettings


class CountingSource:
    def __init__(self, records=None) -> None:
        self.records = records if records is not None else [make_order()]
        self.calls: list[tuple[int, str]] = []

    def __call__(self, limit, order_by):
        self.calls.append((limit, order_by))
        return list(self.records)


class BrokenCache:
    def get(self, key):
        raise CacheUnavailable("cache down")

    def set(self, key, value, ttl):
        raise CacheUnavailable("cache down")

    def delete(self, key):
        raise CacheUnavailable("cache down")

    def remaining_ttl(self, key):
        raise CacheUnavailable("cache down")


def _loader(source, clock=None, **settings):
    store = TTLStore(clock=clock or FakeClock())
    return OrderCacheLoader(source, store, LeaderboardSettings(**settings)), store


@pytest.mark.case(point="Second read within the TTL is served from cache", keyword="date")
def test_second_read_within_ttl_does_not_refetch():
    source = CountingSource()
    loader, _ = _loader(source)

    first = loader.get_orders("date")
    second = loader.get_orders("date")

    assert first == second
    assert source.calls == [(1000, "date")]


@pytest.mark.case(point="Each ordering mode has its own cache entry")
def test_modes_are_cached_separately():
    source = CountingSource()
    loader, store = _loader(source)

    loader.get_orders("date")
    loader.get_orders("total")

    assert source.calls == [(1000, "date"), (1000, "total")]
    assert store.get(cache_key("date")) is not None
    assert store.get(cache_key("total")) is not None


@pytest.mark.case(point="Expired cache is refetched")
def test_refetch_after_ttl():
    clock = FakeClock()
    source = CountingSource()
    loader, _ = _loader(source, clock=clock, cache_ttl_seconds=600)

    loader.get_orders("date")
    clock.advance(600)
    loader.get_orders("date")

    assert len(source.calls) == 2


@pytest.mark.case(point="Configured max_orders bounds the store query and the cached list")
def test_max_orders_bounds_query():
    records = [make_order(completed_at=NOW - i) for i in range(5)]
    source = CountingSource(records)
    loader, _ = _loader(source, max_orders=3)

    orders = loader.get_orders("date")

    assert source.calls == [(3, "date")]
    assert len(orders) == 3


@pytest.mark.case(point="Cached lists are sorted descending by the ordering key")
def test_orders_sorted_descending():
    records = [
        make_order(completed_at=NOW - 300, total=Decimal("5")),
        make_order(completed_at=NOW - 100, total=Decimal("1")),
        make_order(completed_at=NOW - 200, total=Decimal("50")),
    ]
    loader, _ = _loader(CountingSource(records))

    by_date = [o.completed_at for o in loader.get_orders("date")]
    by_total = [o.total for o in loader.get_orders("total")]

    assert by_date == sorted(by_date, reverse=True)
    assert by_total == [Decimal("50"), Decimal("5"), Decimal("1")]


@pytest.mark.case(point="Callers cannot mutate the cached list")
def test_returned_list_is_a_copy():
    loader, _ = _loader(CountingSource())
    orders = loader.get_orders("date")
    orders.clear()

    assert len(loader.get_orders("date")) == 1


@pytest.mark.case(point="Store failures propagate and nothing is cached")
def test_store_unavailable_propagates():
    def failing(limit, order_by):
        raise StoreUnavailable("db down")

    loader, store = _loader(failing)
    with pytest.raises(StoreUnavailable):
        loader.get_orders("date")
    assert store.get(cache_key("date")) is None


@pytest.mark.case(point="A failing cache degrades to a direct store fetch")
def test_cache_unavailable_falls_back_to_store():
    source = CountingSource()
    loader = OrderCacheLoader(source, BrokenCache(), LeaderboardSettings())

    assert loader.get_orders("date") == source.records
    assert loader.get_orders("date") == source.records
    assert len(source.calls) == 2
    assert loader.on_order_status_changed(1, "processing", "completed") == []


@pytest.mark.parametrize(
    "old_status, new_status",
    [("processing", "on-hold"), ("pending", "cancelled"), ("completed", "completed")],
)
@pytest.mark.case(point="Transitions that do not cross 'completed' never invalidate")
def test_non_qualifying_transition_keeps_cache(old_status, new_status):
    clock = FakeClock()
    loader, store = _loader(CountingSource(), clock=clock, cache_ttl_seconds=100)
    loader.get_orders("date")
    clock.advance(95)

    assert loader.on_order_status_changed(7, old_status, new_status) == []
    assert store.get(cache_key("date")) is not None


@pytest.mark.parametrize("old_status, new_status", [("processing", "completed"), ("wc-completed", "wc-refunded")])
@pytest.mark.case(point="Entering or leaving 'completed' near expiry drops the cache")
def test_qualifying_transition_near_expiry_invalidates(old_status, new_status):
    clock = FakeClock()
    source = CountingSource()
    loader, store = _loader(source, clock=clock, cache_ttl_seconds=600)
    loader.get_orders("date")
    loader.get_orders("total")
    clock.advance(550)

    deleted = loader.on_order_status_changed(7, old_status, new_status)

    assert deleted == [cache_key("date"), cache_key("total")]
    loader.get_orders("date")
    assert len(source.calls) == 3


@pytest.mark.case(point="A fresh cache survives a qualifying transition")
def test_qualifying_transition_with_long_remaining_ttl_keeps_cache():
    clock = FakeClock()
    loader, store = _loader(CountingSource(), clock=clock)
    loader.get_orders("date")
    clock.advance(60)

    assert loader.on_order_status_changed(7, "processing", "completed") == []
    assert store.get(cache_key("date")) is not None


@pytest.mark.case(point="Only near-expiry entries are dropped")
def test_invalidation_is_per_entry():
    clock = FakeClock()
    loader, store = _loader(CountingSource(), clock=clock, cache_ttl_seconds=600)
    loader.get_orders("date")
    clock.advance(550)
    loader.get_orders("total")

    assert loader.on_order_status_changed(7, "completed", "refunded") == [cache_key("date")]
    assert store.get(cache_key("total")) is not None


def test_normalize_status():
    assert normalize_status("WC-Completed") == "completed"
    assert normalize_status(" processing ") == "processing"
    assert normalize_status(None) == ""
