"""
Rate limiting middleware.

Two in-memory sliding windows:
- public: /verify and /assistant. Unauthenticated, and each verification
  appends a scan event, so repeated scanning is throttled per IP.
- default: everything else, keyed by bearer token or IP.

In-memory storage is per process. Multi-worker deployments need a shared
store for the limits to be global.
"""
import hashlib
import time
import logging
from collections import defaultdict
from typing import Dict, Tuple
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings

logger = logging.getLogger(__name__)

PUBLIC_PREFIXES = ("/verify", "/assistant")
EXEMPT_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


class RateLimiter:
    """In-memory rate limiter with sliding window."""

    def __init__(self, requests: int = 100, window: int = 60):
        """
        Args:
            requests: Maximum requests allowed in window
            window: Time window in seconds
        """
        self.requests = requests
        self.window = window
        self.clients: Dict[str, list] = defaultdict(list)
        self.last_cleanup = time.time()

    def is_allowed(self, client_id: str) -> Tuple[bool, int]:
        """
        Returns:
            (allowed, remaining)
        """
        now = time.time()

        if now - self.last_cleanup > 300:
            self._cleanup(now)
            self.last_cleanup = now

        cutoff = now - self.window
        timestamps = [ts for ts in self.clients[client_id] if ts > cutoff]
        self.clients[client_id] = timestamps

        if len(timestamps) < self.requests:
            timestamps.append(now)
            return True, self.requests - len(timestamps)
        return False, 0

    def reset(self):
        self.clients.clear()

    def _cleanup(self, now: float):
        """Remove expired entries to prevent memory bloat."""
        cutoff = now - self.window
        for client_id in list(self.clients.keys()):
            timestamps = [ts for ts in self.clients[client_id] if ts > cutoff]
            if timestamps:
                self.clients[client_id] = timestamps
            else:
                del self.clients[client_id]

        logger.info(f"Rate limiter cleanup: {len(self.clients)} active clients")


rate_limiter = RateLimiter(
    requests=settings.RATE_LIMIT_REQUESTS,
    window=settings.RATE_LIMIT_WINDOW_SECONDS
)

public_rate_limiter = RateLimiter(
    requests=settings.VERIFY_RATE_LIMIT_REQUESTS,
    window=settings.RATE_LIMIT_WINDOW_SECONDS
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply the matching limiter to every request."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"

        if path.startswith(PUBLIC_PREFIXES):
            limiter = public_rate_limiter
            client_id = f"ip:{client_ip}"
        else:
            limiter = rate_limiter
            auth_header = request.headers.get("authorization", "")
            if auth_header.startswith("Bearer "):
                # JWT headers are identical across users; key on a digest of the whole token
                client_id = f"token:{hashlib.sha256(auth_header[7:].encode()).hexdigest()[:16]}"
            else:
                client_id = f"ip:{client_ip}"

        allowed, remaining = limiter.is_allowed(client_id)

        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_id} on {request.method} {path}")
            # Raising inside BaseHTTPMiddleware bypasses exception handlers; respond directly
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": f"Rate limit exceeded. Try again in {limiter.window} seconds."},
                headers={
                    "Retry-After": str(limiter.window),
                    "X-RateLimit-Limit": str(limiter.requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limiter.requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Window"] = str(limiter.window)
        return response
