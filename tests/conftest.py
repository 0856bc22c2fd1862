"""Root test configuration — shared fixtures for the HireFire agent tests."""

from unittest.mock import MagicMock

import pytest

import hirefire_resource.configuration

HIREFIRE_TOKEN = "8ab101e2-51da-49bc-beba-111dec49a287"

HIREFIRE_ENVIRONMENT_VARIABLE_NAMES: list[str] = [
    "HIREFIRE_TOKEN",
    "HIREFIRE_DISPATCH_URL",
    "HIREFIRE_VERBOSE",
    "HIREFIRE_LOG_LEVEL",
]


class FakeClock:
    """A settable stand-in for ``time.time``."""

    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture(autouse=True)
def _clear_hirefire_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without any HIREFIRE_* variables from the outer environment."""
    for variable_name in HIREFIRE_ENVIRONMENT_VARIABLE_NAMES:
        monkeypatch.delenv(variable_name, raising=False)


@pytest.fixture
def hirefire_token(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setenv("HIREFIRE_TOKEN", HIREFIRE_TOKEN)
    return HIREFIRE_TOKEN


@pytest.fixture
def configuration() -> hirefire_resource.configuration.Configuration:
    """A configuration whose logger records calls instead of writing output."""
    configuration = hirefire_resource.configuration.Configuration()
    configuration.logger = MagicMock()
    return configuration


@pytest.fixture
def fake_clock() -> FakeClock:
    """A clock frozen at 2000-01-01T00:00:00Z."""
    return FakeClock(946_684_800.0)
