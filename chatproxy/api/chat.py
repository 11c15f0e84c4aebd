from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from chatproxy.api.deps import get_clock, get_gateway, get_settings, get_store
from chatproxy.core.config import Settings
from chatproxy.core.errors import ConfigurationError, QuotaDenied, ValidationError
from chatproxy.core.identity import short_key, user_key_from_request
from chatproxy.core.llm import UpstreamGateway
from chatproxy.core.store import QuotaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


def validation_message(errors: Sequence[Dict[str, Any]]) -> str:
    """Client-facing text for the first pydantic error on a chat body."""
    if not errors:
        return "Invalid request body"
    first = errors[0]
    kind = first.get("type", "")
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    if kind == "json_invalid":
        return "Request body is not valid JSON"
    if kind == "too_short" and field == "messages":
        return "Send at least one message"
    if kind == "missing":
        return f"Missing required field: {field}" if field else "Request body is required"
    if kind == "extra_forbidden":
        return f"Unknown field: {field}"
    return f"Invalid value for {field}" if field else "Invalid request body"


class ChatMessage(BaseModel):
    role: Optional[str] = None
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    messages: List[ChatMessage] = Field(..., min_length=1)
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")


@router.get("/limits")
async def limits(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: QuotaStore = Depends(get_store),
    clock: Callable[[], int] = Depends(get_clock),
) -> Dict[str, Any]:
    user_key = user_key_from_request(request)
    decision = store.check(user_key, clock(), settings.limits)
    return {
        "userId": short_key(user_key) + "...",
        "allowed": decision.allowed,
        "remaining": decision.remaining,
        "message": decision.reason,
        "config": {
            "perDay": settings.limits.max_per_day,
            "perHour": settings.limits.max_per_hour,
            "perMinute": settings.limits.max_per_minute,
            "cooldown": settings.limits.cooldown_seconds,
        },
    }


@router.post("/chat")
async def chat(
    payload: ChatRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    store: QuotaStore = Depends(get_store),
    gateway: UpstreamGateway = Depends(get_gateway),
    clock: Callable[[], int] = Depends(get_clock),
) -> Dict[str, Any]:
    max_length = settings.upstream.max_message_length
    if len(payload.messages[-1].content) > max_length:
        raise ValidationError(f"Message is too long. Maximum {max_length} characters")

    if not gateway.configured:
        logger.error("[CONFIG] UPSTREAM_API_KEY is not set, refusing chat request")
        raise ConfigurationError()

    user_key = user_key_from_request(request)
    tag = short_key(user_key)

    # Charged here, before the upstream call: failed calls still count.
    decision = store.admit(user_key, clock(), settings.limits)
    if not decision.allowed:
        logger.info("[LIMIT] User %s: %s", tag, decision.reason)
        raise QuotaDenied(decision.reason, retry_after=decision.retry_after)

    content = await gateway.complete(
        [message.model_dump() for message in payload.messages],
        payload.system_prompt,
        user_tag=tag,
    )

    remaining = store.snapshot(user_key, clock(), settings.limits)
    logger.info("[OK] User %s | Remaining: %s/day", tag, remaining["day"] if remaining else "?")
    return {"content": content, "limits": remaining}
