from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from chatproxy.core.config import UpstreamConfig
from chatproxy.core.errors import (
    ConfigurationError,
    InternalError,
    UpstreamFailure,
    UpstreamThrottled,
    UpstreamTimeout,
)
from chatproxy.core.llm import EMPTY_REPLY_MESSAGE, UpstreamGateway

CONFIG = UpstreamConfig(api_key="sk-test", model="test-model", timeout_seconds=0.2)


def _reply(text):
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def _gateway(handler, config: UpstreamConfig = CONFIG) -> UpstreamGateway:
    return UpstreamGateway(config, transport=httpx.MockTransport(handler))


def _complete(gateway: UpstreamGateway, messages=None, system_prompt=None):
    messages = messages or [{"role": "user", "content": "hello"}]
    return asyncio.run(gateway.complete(messages, system_prompt))


def test_success_returns_reply_and_sends_expected_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        seen["title"] = request.headers["x-title"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_reply("hi there"))

    assert _complete(_gateway(handler), system_prompt="Be brief.") == "hi there"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["title"] == CONFIG.title
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "hello"},
    ]


def test_history_is_trimmed_and_content_truncated():
    gateway = UpstreamGateway(UpstreamConfig(api_key="k", max_history_messages=3, max_message_length=5))
    messages = [{"role": "user" if i % 2 else "bot", "content": f"message-{i}"} for i in range(6)]
    built = gateway.build_messages(messages)

    assert built[0] == {"role": "system", "content": gateway.config.default_system_prompt}
    assert built[1:] == [
        {"role": "user", "content": "messa"},
        {"role": "assistant", "content": "messa"},
        {"role": "user", "content": "messa"},
    ]


def test_missing_role_maps_to_assistant():
    gateway = UpstreamGateway(CONFIG)
    assert gateway.build_messages([{"role": None, "content": "x"}])[1]["role"] == "assistant"


def test_upstream_429_is_throttled():
    gateway = _gateway(lambda request: httpx.Response(429, json={"error": "rate"}))
    with pytest.raises(UpstreamThrottled) as info:
        _complete(gateway)
    assert info.value.retry_after == 120
    assert info.value.status_code == 503


def test_upstream_error_body_is_not_exposed():
    gateway = _gateway(lambda request: httpx.Response(500, text="internal provider secret"))
    with pytest.raises(UpstreamFailure) as info:
        _complete(gateway)
    assert "secret" not in info.value.message
    assert info.value.status_code == 502


def test_empty_reply_is_failure():
    gateway = _gateway(lambda request: httpx.Response(200, json={"choices": []}))
    with pytest.raises(UpstreamFailure) as info:
        _complete(gateway)
    assert info.value.message == EMPTY_REPLY_MESSAGE


def test_blank_content_is_failure():
    gateway = _gateway(lambda request: httpx.Response(200, json=_reply("")))
    with pytest.raises(UpstreamFailure):
        _complete(gateway)


def test_unparseable_body_is_failure():
    gateway = _gateway(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(UpstreamFailure) as info:
        _complete(gateway)
    assert info.value.message == EMPTY_REPLY_MESSAGE


def test_deadline_exceeded_is_timeout():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(2)
        return httpx.Response(200, json=_reply("too late"))

    with pytest.raises(UpstreamTimeout) as info:
        _complete(_gateway(handler))
    assert info.value.status_code == 504


def test_httpx_timeout_is_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(UpstreamTimeout):
        _complete(_gateway(handler))


def test_transport_failure_is_internal():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(InternalError) as info:
        _complete(_gateway(handler))
    assert info.value.status_code == 500


def test_missing_key_is_configuration_error():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=_reply("x"))

    gateway = _gateway(handler, UpstreamConfig(api_key=None))
    assert not gateway.configured
    with pytest.raises(ConfigurationError):
        _complete(gateway)
    assert calls == []
