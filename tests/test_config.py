from __future__ import annotations

from chatproxy.core.config import DEFAULT_UPSTREAM_URL, HOUR_MS, Settings


def test_defaults_without_environment(monkeypatch):
    for name in ("UPSTREAM_API_KEY", "MAX_REQUESTS_PER_MINUTE", "ALLOWED_ORIGINS", "ADMIN_TOKEN", "PORT"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env(dotenv=False)

    assert settings.upstream.api_key is None
    assert settings.upstream.url == DEFAULT_UPSTREAM_URL
    assert settings.upstream.timeout_seconds == 30.0
    assert settings.limits.max_per_minute == 3
    assert settings.limits.retention_ms == 25 * HOUR_MS
    assert settings.admin_token is None
    assert settings.port == 3000


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("UPSTREAM_API_KEY", "sk-live")
    monkeypatch.setenv("MAX_REQUESTS_PER_MINUTE", "5")
    monkeypatch.setenv("COOLDOWN_SECONDS", "0")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example ,")
    monkeypatch.setenv("ADMIN_TOKEN", "")
    settings = Settings.from_env(dotenv=False)

    assert settings.upstream.api_key == "sk-live"
    assert settings.limits.max_per_minute == 5
    assert settings.limits.cooldown_seconds == 0
    assert settings.allowed_origins == ["https://a.example", "https://b.example"]
    assert settings.admin_token is None
