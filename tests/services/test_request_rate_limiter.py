"""
Tests for the per-minute IP + user request guard.
"""

from types import SimpleNamespace

import pytest

from src.services.rate_limit_store import MemoryRateLimitStore
from src.services.request_rate_limiter import RequestRateGuard


@pytest.fixture
def user_store(clock):
    return MemoryRateLimitStore(clock=clock)


@pytest.fixture
def guard(clock, memory_store, user_store):
    return RequestRateGuard(
        ip_limit=3,
        user_limit=2,
        window_seconds=60,
        store=memory_store,
        user_store=user_store,
        clock=clock,
    )


class TestIpLimit:
    def test_anonymous_traffic_limited_by_ip(self, guard):
        results = [guard.check("1.2.3.4") for _ in range(4)]
        assert [r.allowed for r in results] == [True, True, True, False]
        assert results[-1].limit_type == "ip"
        assert results[-1].retry_after == 60

    def test_ip_window_resets(self, guard, clock):
        for _ in range(3):
            guard.check("1.2.3.4")
        clock.advance(61)
        assert guard.check("1.2.3.4").allowed is True


class TestUserLimit:
    def test_user_limit_applies_across_ips(self, guard):
        assert guard.check("1.1.1.1", "user-1").allowed is True
        assert guard.check("2.2.2.2", "user-1").allowed is True

        result = guard.check("3.3.3.3", "user-1")

        assert result.allowed is False
        assert result.limit_type == "user"
        assert result.limit == 2

    def test_user_denial_does_not_charge_ip(self, guard, memory_store):
        guard.check("1.1.1.1", "user-1")
        guard.check("1.1.1.1", "user-1")
        guard.check("1.1.1.1", "user-1")  # denied by user counter

        assert memory_store.get_record("ip:1.1.1.1").count == 2

    def test_ip_denial_does_not_charge_user(self, guard, user_store):
        for _ in range(3):
            guard.check("1.1.1.1")
        result = guard.check("1.1.1.1", "user-1")

        assert result.allowed is False
        assert result.limit_type == "ip"
        assert user_store.get_record("user:user-1") is None

    def test_allowed_result_reports_tightest_counter(self, guard):
        result = guard.check("1.1.1.1", "user-1")
        assert result.allowed is True
        # user: 1 of 2 left, ip: 2 of 3 left
        assert result.limit_type == "user"
        assert result.remaining == 1


class TestCounterIsolation:
    def test_counters_kept_in_separate_stores(self, guard, memory_store, user_store):
        guard.check("1.1.1.1", "user-1")

        assert memory_store.get_record("user:user-1") is None
        assert user_store.get_record("ip:1.1.1.1") is None
        assert user_store.get_record("user:user-1").count == 1

    def test_ip_flood_does_not_evict_user_counter(self, clock):
        guard = RequestRateGuard(
            ip_limit=100,
            user_limit=2,
            window_seconds=60,
            store=MemoryRateLimitStore(max_entries=5, clock=clock),
            clock=clock,
        )
        guard.check("10.0.0.1", "user-1")
        guard.check("10.0.0.1", "user-1")

        # Spoofed X-Forwarded-For values, one fresh IP counter each
        for i in range(50):
            guard.check(f"203.0.113.{i}")

        result = guard.check("10.0.0.2", "user-1")
        assert result.allowed is False
        assert result.limit_type == "user"
        assert guard.store.get_stats()["evictions"] > 0
        assert guard.user_store.get_stats()["evictions"] == 0

    def test_shared_store_rejected(self, memory_store):
        with pytest.raises(ValueError):
            RequestRateGuard(store=memory_store, user_store=memory_store)


class TestRequestResolution:
    def test_check_request_reads_headers(self, guard, memory_store, user_store):
        request = SimpleNamespace(headers={"x-real-ip": "8.8.8.8"})
        guard.check_request(request, user_id="user-9")
        assert memory_store.get_record("ip:8.8.8.8").count == 1
        assert user_store.get_record("user:user-9").count == 1

    def test_stats(self, guard):
        guard.check("1.1.1.1", "user-1")
        stats = guard.get_stats()
        assert stats["ip_limit"] == 3
        assert stats["user_limit"] == 2
        assert stats["tracked_keys"] == 2
        assert stats["user_store"]["tracked_keys"] == 1

    def test_cleanup_sweeps_both_stores(self, guard, clock):
        guard.check("1.1.1.1", "user-1")
        clock.advance(61)
        assert guard.cleanup_expired() == 2
