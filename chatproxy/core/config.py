"""
Runtime configuration for the chat proxy.

Values come from the environment (optionally a local `.env` file). Nothing
here reads the environment at import time; call `Settings.from_env()` from the
application factory so tests can build their own settings.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_UPSTREAM_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "nousresearch/hermes-3-llama-3.1-405b:free"
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _list_env(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class QuotaLimits:
    max_per_minute: int = 3
    max_per_hour: int = 15
    max_per_day: int = 50
    cooldown_seconds: int = 10
    retention_hours: int = 25
    idle_hours: int = 24

    @property
    def retention_ms(self) -> int:
        return self.retention_hours * HOUR_MS

    @property
    def idle_ms(self) -> int:
        return self.idle_hours * HOUR_MS


@dataclass(frozen=True)
class UpstreamConfig:
    api_key: Optional[str] = None
    url: str = DEFAULT_UPSTREAM_URL
    model: str = DEFAULT_MODEL
    timeout_seconds: float = 30.0
    referer: str = "https://givbox.ai"
    title: str = "GIV BOX AI"
    default_system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_message_length: int = 4000
    max_history_messages: int = 20
    throttle_retry_after: int = 120


@dataclass(frozen=True)
class Settings:
    service_name: str = "Chat Quota Proxy"
    limits: QuotaLimits = field(default_factory=QuotaLimits)
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    cleanup_interval_seconds: int = 3600
    allowed_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5500", "http://127.0.0.1:5500"]
    )
    admin_token: Optional[str] = None
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()

        limits = QuotaLimits(
            max_per_minute=_int_env("MAX_REQUESTS_PER_MINUTE", 3),
            max_per_hour=_int_env("MAX_REQUESTS_PER_HOUR", 15),
            max_per_day=_int_env("MAX_REQUESTS_PER_DAY", 50),
            cooldown_seconds=_int_env("COOLDOWN_SECONDS", 10),
        )
        upstream = UpstreamConfig(
            api_key=os.getenv("UPSTREAM_API_KEY") or None,
            url=os.getenv("UPSTREAM_URL", DEFAULT_UPSTREAM_URL),
            model=os.getenv("UPSTREAM_MODEL", DEFAULT_MODEL),
            timeout_seconds=float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30")),
            referer=os.getenv("UPSTREAM_REFERER", "https://givbox.ai"),
            title=os.getenv("UPSTREAM_TITLE", "GIV BOX AI"),
            default_system_prompt=os.getenv("DEFAULT_SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
            max_message_length=_int_env("MAX_MESSAGE_LENGTH", 4000),
            max_history_messages=_int_env("MAX_HISTORY_MESSAGES", 20),
        )
        return cls(
            service_name=os.getenv("SERVICE_NAME", "Chat Quota Proxy"),
            limits=limits,
            upstream=upstream,
            cleanup_interval_seconds=_int_env("CLEANUP_INTERVAL_SECONDS", 3600),
            allowed_origins=_list_env("ALLOWED_ORIGINS", cls().allowed_origins),
            admin_token=os.getenv("ADMIN_TOKEN") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int_env("PORT", 3000),
        )
