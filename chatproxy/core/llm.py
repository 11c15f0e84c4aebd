"""
Upstream chat-completion client.

Forwards an admitted conversation to an OpenAI-compatible completions endpoint
under a hard deadline and turns every outcome into either the reply text or one
of the error kinds in `chatproxy.core.errors`. Nothing network related escapes
this module unclassified.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from chatproxy.core.config import UpstreamConfig
from chatproxy.core.errors import (
    ConfigurationError,
    InternalError,
    UpstreamFailure,
    UpstreamThrottled,
    UpstreamTimeout,
)

logger = logging.getLogger(__name__)

EMPTY_REPLY_MESSAGE = "The AI returned no answer. Try rephrasing."


def _reply_text(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str) and content:
        return content
    return None


class UpstreamGateway:
    """
    One instance per process. `transport` lets tests plug in
    `httpx.MockTransport` instead of the network.
    """

    def __init__(self, config: UpstreamConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.config.api_key)

    def build_messages(self, messages: Sequence[Dict[str, str]], system_prompt: Optional[str] = None) -> List[Dict[str, str]]:
        limit = self.config.max_message_length
        history = list(messages)[-self.config.max_history_messages:]
        built = [{"role": "system", "content": system_prompt or self.config.default_system_prompt}]
        for message in history:
            built.append(
                {
                    "role": "user" if message.get("role") == "user" else "assistant",
                    "content": str(message.get("content", ""))[:limit],
                }
            )
        return built

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.config.referer,
            "X-Title": self.config.title,
        }

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        timeout = httpx.Timeout(self.config.timeout_seconds)
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
            return await client.post(self.config.url, json=payload, headers=self._headers())

    async def complete(
        self,
        messages: Sequence[Dict[str, str]],
        system_prompt: Optional[str] = None,
        user_tag: str = "",
    ) -> str:
        if not self.configured:
            raise ConfigurationError()

        payload = {
            "model": self.config.model,
            "messages": self.build_messages(messages, system_prompt),
        }

        try:
            response = await asyncio.wait_for(self._post(payload), timeout=self.config.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.error("[TIMEOUT] User %s: no upstream reply within %ss", user_tag, self.config.timeout_seconds)
            raise UpstreamTimeout() from exc
        except Exception as exc:
            logger.exception("[ERROR] Upstream call failed for user %s: %s", user_tag, exc)
            raise InternalError() from exc

        return self._extract(response)

    def _extract(self, response: httpx.Response) -> str:
        if response.status_code == 429:
            logger.warning("[UPSTREAM 429] Rate limited")
            raise UpstreamThrottled(retry_after=self.config.throttle_retry_after)

        if not response.is_success:
            logger.error("[UPSTREAM ERROR] Status: %s", response.status_code)
            logger.error("[UPSTREAM ERROR] Body: %s", response.text)
            raise UpstreamFailure()

        try:
            data = response.json()
        except ValueError:
            logger.error("[UPSTREAM ERROR] Unparseable body: %s", response.text[:500])
            raise UpstreamFailure(EMPTY_REPLY_MESSAGE)

        text = _reply_text(data)
        if not text:
            logger.warning("[UPSTREAM] Empty reply")
            raise UpstreamFailure(EMPTY_REPLY_MESSAGE)
        return text
