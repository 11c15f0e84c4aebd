from __future__ import annotations

import logging
import secrets
from typing import Callable, Dict, Optional, Union

from fastapi import APIRouter, Depends, Header, HTTPException

from chatproxy.api.deps import get_clock, get_settings, get_store
from chatproxy.core.config import Settings
from chatproxy.core.identity import short_key
from chatproxy.core.store import QuotaStore

logger = logging.getLogger(__name__)


def verify_token(
    settings: Settings = Depends(get_settings),
    x_api_token: Optional[str] = Header(default=None),
) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=404, detail="admin API disabled")
    if x_api_token is None or not secrets.compare_digest(x_api_token.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="invalid API token")


router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(verify_token)])


@router.post("/users/{user_key}/block")
async def block_user(
    user_key: str,
    store: QuotaStore = Depends(get_store),
    clock: Callable[[], int] = Depends(get_clock),
) -> Dict[str, Union[str, bool]]:
    store.block(user_key, clock())
    logger.warning("[ADMIN] Blocked user %s", short_key(user_key))
    return {"userId": user_key, "blocked": True}


@router.delete("/users/{user_key}/block")
async def unblock_user(user_key: str, store: QuotaStore = Depends(get_store)) -> Dict[str, Union[str, bool]]:
    if not store.unblock(user_key):
        raise HTTPException(status_code=404, detail="user not found")
    logger.warning("[ADMIN] Unblocked user %s", short_key(user_key))
    return {"userId": user_key, "blocked": False}
