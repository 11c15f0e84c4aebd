from __future__ import annotations

import pytest

from chatproxy.core.config import QuotaLimits, Settings, UpstreamConfig

START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> int:
        self.now += int(seconds * 1000)
        return self.now


def make_settings(api_key="test-key", timeout_seconds=30.0, admin_token=None, **limit_overrides) -> Settings:
    return Settings(
        limits=QuotaLimits(**limit_overrides),
        upstream=UpstreamConfig(api_key=api_key, timeout_seconds=timeout_seconds),
        admin_token=admin_token,
        allowed_origins=["http://localhost:5500"],
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
