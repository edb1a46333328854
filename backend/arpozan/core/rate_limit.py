"""
Rate limiting for the Arpozan backend
Uses in-memory storage with sliding window algorithm

The counters live in this process only. Several instances behind a load
balancer each keep their own counters, so the effective limit multiplies
by the number of instances; a shared store would have to implement
can_make_request(identity) to change that.
"""
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from .config import settings
from .errors import RateLimitError


class RateLimiter:
    """
    In-memory rate limiter using sliding window algorithm.

    Args:
        max_requests: Requests allowed per identity within one window
        window_seconds: Window length
        clock: Time source (seconds); tests pass a fake one
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: int = 60,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or time.time
        # {identity: [timestamp, ...]}
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._last_cleanup = self._clock()

    def _cleanup_old_entries(self, now: float):
        """Forget identities whose requests all left the window"""
        if now - self._last_cleanup < self.window_seconds:
            return

        cutoff = now - self.window_seconds
        for identity in list(self._requests.keys()):
            self._requests[identity] = [ts for ts in self._requests[identity] if ts > cutoff]
            if not self._requests[identity]:
                del self._requests[identity]

        self._last_cleanup = now

    def is_allowed(self, identity: str) -> Tuple[bool, int, int]:
        """
        Check (and record) one request.

        Returns:
            Tuple of (is_allowed, remaining_requests, retry_after_seconds)
        """
        now = self._clock()
        self._cleanup_old_entries(now)
        window_start = now - self.window_seconds

        in_window = [ts for ts in self._requests.get(identity, []) if ts > window_start]

        if len(in_window) >= self.max_requests:
            oldest = min(in_window)
            retry_after = max(1, int(oldest + self.window_seconds - now) + 1)
            self._requests[identity] = in_window
            return False, 0, retry_after

        in_window.append(now)
        self._requests[identity] = in_window
        return True, self.max_requests - len(in_window), 0

    def can_make_request(self, identity: str) -> bool:
        allowed, _, _ = self.is_allowed(identity)
        return allowed

    def enforce(self, identity: str) -> int:
        """
        Record a request or raise RateLimitError

        Returns:
            Remaining requests in the current window
        """
        allowed, remaining, retry_after = self.is_allowed(identity)
        if not allowed:
            raise RateLimitError(retry_after)
        return remaining

    def reset(self) -> None:
        self._requests.clear()


# Global rate limiter instance
rate_limiter = RateLimiter(
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)

# Paths that are exempt from rate limiting
EXEMPT_PATHS = {
    "/",
    "/health",
    "/api/v1/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


def get_client_ip(request: Request) -> str:
    """Get the client IP, considering proxies"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def request_identity(request: Request) -> str:
    """
    Caller identity for rate limiting

    Bearer tokens identify the caller; anything else is keyed by IP.
    """
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return f"jwt:{hash(auth_header)}"
    return f"ip:{get_client_ip(request)}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware that gates every non-exempt request through the limiter.

    Headers returned:
    - X-RateLimit-Limit: Maximum requests per window
    - X-RateLimit-Remaining: Remaining requests in current window
    - Retry-After: Seconds until a request is allowed again (when limited)
    """

    def __init__(self, app, limiter: Optional[RateLimiter] = None):
        super().__init__(app)
        self.limiter = limiter or rate_limiter

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        try:
            remaining = self.limiter.enforce(request_identity(request))
        except RateLimitError as e:
            # JSONResponse instead of raising so the response still passes through CORS
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"success": False, "error": e.message, "kind": e.kind},
                headers={
                    "X-RateLimit-Limit": str(self.limiter.max_requests),
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(e.retry_after),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limiter.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
