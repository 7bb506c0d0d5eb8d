"""Per-user sliding window rate limiting."""

from __future__ import annotations

import time
from collections import defaultdict, deque

from fastapi import Depends, HTTPException, Request, status

from guarded_rag.api.auth import verify_token
from guarded_rag.observability.logger import get_logger

logger = get_logger("rate_limiter")


class SlidingWindowRateLimiter:
    """In-memory sliding window rate limiter keyed by caller."""

    def __init__(self, window_seconds: float = 60.0) -> None:
        self._window = window_seconds
        self._requests: dict[str, deque[float]] = defaultdict(deque)

    @property
    def window_seconds(self) -> float:
        return self._window

    def check(self, key: str, max_requests: int, now: float | None = None) -> bool:
        """Return True if request is allowed, False if rate-limited."""
        now = time.monotonic() if now is None else now
        window = self._requests[key]
        while window and window[0] <= now - self._window:
            window.popleft()

        if len(window) >= max_requests:
            return False

        window.append(now)
        return True

    def remaining(self, key: str, max_requests: int) -> int:
        return max(0, max_requests - len(self._requests.get(key, ())))


async def rate_limit(
    request: Request,
    token_payload: dict = Depends(verify_token),
) -> str:
    """FastAPI dependency: authenticate, enforce the per-user limit, return the user id."""
    settings = request.app.state.settings
    limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
    user_id = token_payload["sub"]

    if not limiter.check(user_id, settings.rate_limit_requests_per_minute):
        logger.warning("rate_limited", user_id=user_id)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Try again later.",
            headers={"Retry-After": str(int(limiter.window_seconds))},
        )

    return user_id
