"""
Error kinds surfaced to HTTP clients.

Each kind carries the status code it maps to and a human readable message.
Diagnostic details (upstream bodies, stack traces) are logged where they
happen and never stored on the exception.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ProxyError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, retry_after: Optional[int] = None):
        self.message = message or self.default_message
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": True, "message": self.message}
        if self.retry_after is not None:
            body["retryAfter"] = self.retry_after
        return body


class ValidationError(ProxyError):
    status_code = 400
    default_message = "Send at least one message"


class QuotaDenied(ProxyError):
    status_code = 429
    default_message = "Request limit reached"

    def to_body(self) -> Dict[str, Any]:
        # retryAfter is always present on denials, null for manual blocks
        return {"error": True, "message": self.message, "retryAfter": self.retry_after}


class ConfigurationError(ProxyError):
    status_code = 500
    default_message = "Server is not configured: upstream API key is missing"


class InternalError(ProxyError):
    status_code = 500
    default_message = "Internal server error"


class UpstreamFailure(ProxyError):
    status_code = 502
    default_message = "AI server error. Please try again later."


class UpstreamThrottled(ProxyError):
    status_code = 503
    default_message = "Server is temporarily overloaded. Try again in 1-2 minutes."


class UpstreamTimeout(ProxyError):
    status_code = 504
    default_message = "Timed out waiting for a response. Please try again."
