"""
Pseudonymous user keys derived from connection metadata.

The key is a best-effort fingerprint for quota bookkeeping, not an identity
guarantee: users behind the same address with the same browser share a key.
"""
from __future__ import annotations

import hashlib
from typing import Optional

from fastapi import Request

KEY_LENGTH = 16


def resolve_user_key(
    forwarded_for: Optional[str],
    fingerprint: Optional[str],
    user_agent: Optional[str],
) -> str:
    address = (forwarded_for or "").split(",")[0].strip()
    raw = f"{address}_{fingerprint or ''}_{user_agent or ''}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:KEY_LENGTH]


def user_key_from_request(request: Request) -> str:
    headers = request.headers
    address = headers.get("x-forwarded-for") or headers.get("x-real-ip")
    if not address:
        address = request.client.host if request.client else "unknown"
    return resolve_user_key(
        address,
        headers.get("x-user-fingerprint"),
        headers.get("user-agent"),
    )


def short_key(user_key: str) -> str:
    """Prefix safe to print in logs and responses."""
    return user_key[:8]
