"""Global test configuration for Reminder Hub."""

import os
from datetime import datetime, timedelta

import pytest

from reminder_hub.config import Settings
from reminder_hub.context import ServiceContext, build_context, set_context
from reminder_hub.db.store import InMemoryKeyValueStore
from reminder_hub.services.gateway import InMemoryNotificationGateway

# Tuesday morning, before the default 09:00 reminder hour
NOW = datetime(2026, 3, 10, 8, 0)


@pytest.fixture(autouse=True, scope="session")
def _set_test_env_vars():
    """Pin environment variables so Settings never picks up a developer's .env.

    Only sets values that aren't already present, so real env vars take
    precedence.
    """
    defaults = {
        "STORAGE_BACKEND": "memory",
        "GATEWAY_BACKEND": "memory",
        "RECOVERY_ENABLED": "false",
        "HEALTH_CHECK_ON_START": "false",
    }
    originals = {}
    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value
            originals[key] = None
        else:
            originals[key] = os.environ[key]

    # Clear the lru_cache on get_settings so it picks up the new env vars
    from reminder_hub.config import get_settings
    get_settings.cache_clear()

    yield

    for key, original in originals.items():
        if original is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_context():
    """Reset the process-wide service context between tests."""
    set_context(None)
    yield
    set_context(None)


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    """Settable local wall clock."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(storage_backend="memory", gateway_backend="memory")


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def gateway(clock) -> InMemoryNotificationGateway:
    return InMemoryNotificationGateway(clock=clock)


@pytest.fixture
def ctx(settings, store, gateway, clock) -> ServiceContext:
    """Fully wired services over an in-memory store and gateway."""
    return build_context(settings=settings, store=store, gateway=gateway, clock=clock)


@pytest.fixture
def native_ctx(settings, store, clock) -> ServiceContext:
    """Like ``ctx`` but with a gateway that supports native alarms."""
    gateway = InMemoryNotificationGateway(clock=clock, native_alarms=True)
    return build_context(settings=settings, store=store, gateway=gateway, clock=clock)
