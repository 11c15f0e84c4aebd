from __future__ import annotations

from typing import Callable

from fastapi import Request

from chatproxy.core.config import Settings
from chatproxy.core.llm import UpstreamGateway
from chatproxy.core.store import QuotaStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> QuotaStore:
    return request.app.state.store


def get_gateway(request: Request) -> UpstreamGateway:
    return request.app.state.gateway


def get_clock(request: Request) -> Callable[[], int]:
    return request.app.state.clock
