import pytest

from src.config.usage_limits import (
    ANONYMOUS_DAILY_LIMIT,
    DEFAULT_PLAN,
    PLAN_LIMITS,
    get_plan_limits,
    normalize_plan,
)


class TestPlanTable:
    @pytest.mark.parametrize(
        "plan, requests, tokens",
        [
            ("FREE", 10, 1000),
            ("BASIC", 50, 5000),
            ("PLUS", 100, 10000),
            ("PRO", 200, 20000),
        ],
    )
    def test_plan_ceilings(self, plan, requests, tokens):
        config = PLAN_LIMITS[plan]
        assert config.requests == requests
        assert config.tokens_per_minute == tokens
        assert config.window_seconds == 60

    def test_anonymous_default(self):
        assert ANONYMOUS_DAILY_LIMIT == 3

    def test_plan_config_is_immutable(self):
        with pytest.raises(AttributeError):
            PLAN_LIMITS["FREE"].requests = 1000

    def test_plan_table_is_read_only(self):
        with pytest.raises(TypeError):
            PLAN_LIMITS["ENTERPRISE"] = PLAN_LIMITS["PRO"]
        with pytest.raises(TypeError):
            del PLAN_LIMITS["FREE"]


class TestPlanLookup:
    @pytest.mark.parametrize(
        "plan, expected",
        [
            ("PRO", "PRO"),
            ("pro", "PRO"),
            ("  Plus ", "PLUS"),
            ("ENTERPRISE", DEFAULT_PLAN),
            ("", DEFAULT_PLAN),
            (None, DEFAULT_PLAN),
        ],
    )
    def test_normalize_plan(self, plan, expected):
        assert normalize_plan(plan) == expected

    def test_unknown_plan_gets_free_limits(self):
        assert get_plan_limits("UNKNOWN") is PLAN_LIMITS["FREE"]
