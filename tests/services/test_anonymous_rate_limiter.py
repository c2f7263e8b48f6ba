"""
Tests for anonymous rate limiter service.

This test suite validates:
- IP-based daily limit (3 requests/day by default)
- Window reset after 24 hours
- IP resolution from proxy headers
- Usage lookups that do not count as requests
"""

from types import SimpleNamespace

import pytest

from src.services.anonymous_rate_limiter import ANONYMOUS_KEY_PREFIX, AnonymousRateLimiter

DAY = 24 * 60 * 60


@pytest.fixture
def limiter(clock, memory_store):
    return AnonymousRateLimiter(store=memory_store, clock=clock)


class TestAnonymousRateLimiting:
    """Tests for IP-based daily limiting"""

    def test_default_daily_limit(self, limiter):
        assert limiter.daily_limit == 3

    def test_three_requests_then_denied(self, limiter):
        """Test the 4th request from the same IP is rejected"""
        results = [limiter.check("1.2.3.4") for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        denied = results[-1]
        assert denied.remaining == 0
        assert denied.retry_after == DAY
        assert "sign up" in denied.reason
        assert "3 requests/day" in denied.reason

    def test_allowed_again_after_window(self, limiter, clock):
        for _ in range(4):
            limiter.check("1.2.3.4")
        clock.advance(DAY + 1)

        result = limiter.check("1.2.3.4")

        assert result.allowed is True
        assert result.remaining == 2

    def test_different_ips_have_separate_allowance(self, limiter):
        for _ in range(3):
            limiter.check("1.2.3.4")
        assert limiter.check("1.2.3.5").allowed is True

    def test_counter_key_is_prefixed(self, limiter, memory_store):
        limiter.check("1.2.3.4")
        assert memory_store.get_record(f"{ANONYMOUS_KEY_PREFIX}1.2.3.4").count == 1

    def test_custom_daily_limit(self, clock):
        limiter = AnonymousRateLimiter(daily_limit=1, clock=clock)
        assert limiter.check("1.2.3.4").allowed is True
        assert limiter.check("1.2.3.4").allowed is False


class TestRequestResolution:
    """Tests for resolving the caller's IP from a request"""

    def test_check_request_uses_forwarded_for(self, limiter):
        request = SimpleNamespace(headers={"X-Forwarded-For": "9.9.9.9, 10.0.0.1"})
        for _ in range(3):
            limiter.check_request(request)
        assert limiter.check("9.9.9.9").allowed is False

    def test_requests_without_ip_share_unknown_bucket(self, limiter):
        request = SimpleNamespace(headers={})
        for _ in range(3):
            assert limiter.check_request(request).allowed is True
        assert limiter.check_request(SimpleNamespace(headers={})).allowed is False


class TestUsageAndMaintenance:
    def test_get_usage_does_not_charge(self, limiter):
        limiter.check("1.2.3.4")
        assert limiter.get_usage("1.2.3.4").remaining == 2
        assert limiter.get_usage("1.2.3.4").remaining == 2

    def test_reset(self, limiter):
        for _ in range(3):
            limiter.check("1.2.3.4")
        assert limiter.reset("1.2.3.4") is True
        assert limiter.check("1.2.3.4").allowed is True

    def test_cleanup_expired(self, limiter, clock):
        limiter.check("1.2.3.4")
        limiter.check("5.6.7.8")
        clock.advance(DAY + 1)
        assert limiter.cleanup_expired() == 2
        assert limiter.get_stats()["tracked_keys"] == 0
