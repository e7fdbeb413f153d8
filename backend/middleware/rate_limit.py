"""
In-memory rate limiting for the Storefront Order Service.

Guards the endpoints that trigger outbound side effects (payment callback,
order emails, notifications) against floods.

Uses a sliding-window counter per (client IP, route).
For multi-worker deployments, replace with a shared store.
"""
import time
import logging
from collections import defaultdict, deque

from fastapi import HTTPException, Request, Response

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Sliding-window rate limiter.

    Tracks request timestamps per key, oldest first.
    """

    def __init__(self):
        self._requests: dict[str, deque[float]] = defaultdict(deque)

    def _cleanup(self, key: str, window_seconds: int, now: float):
        cutoff = now - window_seconds
        timestamps = self._requests[key]
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()

    def check(self, key: str, max_requests: int, window_seconds: int) -> bool:
        """Record a hit and return True, or return False if the window is full."""
        now = time.monotonic()
        self._cleanup(key, window_seconds, now)

        if len(self._requests[key]) >= max_requests:
            return False

        self._requests[key].append(now)
        return True

    def remaining(self, key: str, max_requests: int, window_seconds: int) -> int:
        self._cleanup(key, window_seconds, time.monotonic())
        return max(0, max_requests - len(self._requests[key]))

    def reset(self):
        self._requests.clear()


# Global rate limiter instance
_limiter = RateLimiter()


def reset_rate_limits():
    """Forget all recorded hits (tests, admin tooling)."""
    _limiter.reset()


def rate_limit(max_requests: int = 10, window_seconds: int = 60):
    """
    FastAPI dependency factory for rate limiting.

    Allowed requests carry X-RateLimit-Limit/X-RateLimit-Remaining headers;
    rejected ones get 429 with Retry-After.

    Usage:
        @router.post("/payment/callback", dependencies=[Depends(rate_limit(60, 60))])
    """
    async def _check_rate_limit(request: Request, response: Response):
        client_ip = request.client.host if request.client else "unknown"
        route = request.scope.get("route")
        route_path = getattr(route, "path", request.url.path)
        key = f"{client_ip}:{route_path}"

        allowed = _limiter.check(key, max_requests, window_seconds)
        remaining = _limiter.remaining(key, max_requests, window_seconds)

        if not allowed:
            logger.warning(
                f"Rate limit exceeded: {client_ip} on {route_path} "
                f"({max_requests}/{window_seconds}s)"
            )
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Maximum {max_requests} requests "
                       f"per {window_seconds} seconds. Try again later.",
                headers={
                    "Retry-After": str(window_seconds),
                    "X-RateLimit-Limit": str(max_requests),
                    "X-RateLimit-Remaining": str(remaining),
                },
            )

        response.headers["X-RateLimit-Limit"] = str(max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)

    return _check_rate_limit
