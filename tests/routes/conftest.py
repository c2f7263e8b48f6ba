"""
Conftest for routes tests - builds a fresh app with its own limiters per test
"""

import pytest
from fastapi.testclient import TestClient

from src.config import Config
from src.main import create_app
from src.services.startup import build_rate_limit_services


class RouteTestConfig(Config):
    RATE_LIMIT_BACKEND = "memory"
    RATE_LIMIT_MAX_ENTRIES = 1000
    RATE_LIMIT_CLEANUP_INTERVAL_SECONDS = 3600
    ANONYMOUS_DAILY_LIMIT = 3
    REQUEST_IP_LIMIT_PER_MINUTE = 20
    REQUEST_USER_LIMIT_PER_MINUTE = 60
    DEFAULT_ESTIMATED_TOKENS = 100


@pytest.fixture
def services():
    return build_rate_limit_services(RouteTestConfig)


@pytest.fixture
def app(services):
    application = create_app()
    application.state.rate_limits = services
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
