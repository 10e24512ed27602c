# backend/app/api/rate_limit.py
"""
Per-client fixed-window rate limiting for webhook-class endpoints.

Built on the `limits` library (the engine behind Flask-Limiter). Each app
owns its own RateLimiter, stored on app.state, so counters never leak
between application instances.

Usage:
    @router.post("/hook", dependencies=[Depends(webhook_rate_limit)])
"""
import logging
import time

from fastapi import Request
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from backend.app.core.errors import AppError, CommonErrorCode

logger = logging.getLogger(__name__)


class RateLimitExceeded(AppError):
    def __init__(self, headers: dict):
        super().__init__(CommonErrorCode.RATE_LIMITED)
        self.headers = headers


def get_client_ip(request: Request, trusted_hops: int = 0) -> str:
    """
    Address used as the rate-limit key.

    X-Forwarded-For is client-controlled except for the entries appended by
    our own proxies, so only the entry added by the outermost trusted proxy
    (`trusted_hops` from the right) is used.
    """
    peer = request.client.host if request.client else "unknown"
    if trusted_hops <= 0:
        return peer

    forwarded = [part.strip() for part in request.headers.get("X-Forwarded-For", "").split(",") if part.strip()]
    if len(forwarded) < trusted_hops:
        return peer
    return forwarded[-trusted_hops]


class RateLimiter:
    def __init__(self, limit: str, namespace: str):
        self.limit = parse(limit)
        self.namespace = namespace
        self.storage = MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)

    def headers(self, key: str) -> dict:
        reset_at, remaining = self.strategy.get_window_stats(self.limit, self.namespace, key)
        return {
            "X-RateLimit-Limit": str(self.limit.amount),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(int(reset_at)),
        }

    def check(self, key: str) -> None:
        if self.strategy.hit(self.limit, self.namespace, key):
            return

        headers = self.headers(key)
        retry_after = max(0, int(float(headers["X-RateLimit-Reset"]) - time.time()))
        headers["Retry-After"] = str(retry_after)
        logger.warning("event=rate_limited namespace=%s", self.namespace)
        raise RateLimitExceeded(headers)


async def webhook_rate_limit(request: Request) -> None:
    limiter: RateLimiter = request.app.state.webhook_limiter
    limiter.check(get_client_ip(request, request.app.state.settings.TRUSTED_PROXY_HOPS))
