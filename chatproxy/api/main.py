from __future__ import annotations

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatproxy.api import admin, chat
from chatproxy.core.clock import now_ms
from chatproxy.core.config import Settings
from chatproxy.core.errors import InternalError, ProxyError, ValidationError
from chatproxy.core.llm import UpstreamGateway
from chatproxy.core.reaper import Reaper
from chatproxy.core.store import QuotaStore

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[QuotaStore] = None,
    gateway: Optional[UpstreamGateway] = None,
    clock: Callable[[], int] = now_ms,
) -> FastAPI:
    settings = settings or Settings.from_env()
    store = store if store is not None else QuotaStore()
    gateway = gateway or UpstreamGateway(settings.upstream)
    reaper = Reaper(store, settings.limits, settings.cleanup_interval_seconds, clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await reaper.start()
        try:
            yield
        finally:
            await reaper.stop()

    app = FastAPI(title=settings.service_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.gateway = gateway
    app.state.reaper = reaper
    app.state.clock = clock
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-User-Fingerprint", "X-Api-Token"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        try:
            return await call_next(request)
        except Exception:
            logger.exception("[ERROR] Unhandled failure on %s %s", request.method, request.url.path)
            error = InternalError()
            return JSONResponse(status_code=error.status_code, content=error.to_body())

    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Rejected request body on %s: %s", request.url.path, exc.errors())
        error = ValidationError(chat.validation_message(exc.errors()))
        return JSONResponse(status_code=error.status_code, content=error.to_body())

    @app.get("/")
    async def status() -> Dict[str, Any]:
        return {
            "status": "ok",
            "service": settings.service_name,
            "activeUsers": len(store),
            "uptimeSeconds": int(time.monotonic() - app.state.started_at),
        }

    app.include_router(chat.router)
    app.include_router(admin.router)
    return app


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    limits = settings.limits
    logger.info("=" * 40)
    logger.info("   %s", settings.service_name)
    logger.info("   Port: %s", settings.port)
    logger.info("   Model: %s", settings.upstream.model)
    logger.info("   API Key: %s", "SET" if settings.upstream.api_key else "MISSING!")
    logger.info(
        "   Limits: %s/day, %s/hour, %s/minute, %ss cooldown",
        limits.max_per_day,
        limits.max_per_hour,
        limits.max_per_minute,
        limits.cooldown_seconds,
    )
    logger.info("=" * 40)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
