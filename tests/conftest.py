"""
Pytest configuration and shared fixtures.

Expiry logic everywhere takes an injected clock, so tests drive time with
FakeClock instead of sleeping.
"""
import pytest

import setup_gate.config as config_module
from setup_gate.auth.sinks import SecretSink
from setup_gate.config import SetupSettings
from setup_gate.setup.completion import MemoryCompletionTracker


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink(SecretSink):
    """Keeps emitted passwords instead of printing them."""

    def __init__(self):
        self.secrets = []
        self.cleared = 0

    def emit(self, secret: str) -> None:
        self.secrets.append(secret)

    def clear(self) -> None:
        self.cleared += 1

    @property
    def last(self) -> str:
        return self.secrets[-1]


@pytest.fixture(autouse=True)
def reset_settings_singleton():
    """Clear the settings cache around each test."""
    config_module._settings = None
    yield
    config_module._settings = None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def tracker():
    return MemoryCompletionTracker()


@pytest.fixture
def settings(tmp_path):
    """Settings isolated to a temporary marker directory."""
    return SetupSettings(
        marker_directory=str(tmp_path),
        log_json=False,
        log_level="WARNING",
    )
