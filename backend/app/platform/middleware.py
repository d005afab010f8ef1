import time
import uuid
import logging
from collections import defaultdict
from typing import NamedTuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from .request_context import reset_request_id, set_request_id

logger = logging.getLogger("clevrs.middleware")


class RateRule(NamedTuple):
    bucket: str
    prefix: str
    suffixes: tuple
    max_requests: int


# First matching rule wins; unmatched paths are not limited
RATE_RULES = (
    RateRule("auth", "/api/v1/auth/jwt/login", (), 20),
    RateRule("auth", "/api/v1/auth/register", (), 20),
    RateRule("assignment_response", "/api/v1/assignments/", ("/accept", "/reject"), 30),
    RateRule("cron", "/api/v1/cron/", (), 30),
)
RATE_WINDOW_SEC = 60

# "<bucket>:<ip>" -> request timestamps inside the current window
_rate_limit_store = defaultdict(list)


def _get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def match_rate_rule(path: str):
    for rule in RATE_RULES:
        if not path.startswith(rule.prefix):
            continue
        if rule.suffixes and not path.endswith(rule.suffixes):
            continue
        return rule
    return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Answer 429 once an IP exceeds its per-minute budget on a limited route."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        rule = match_rate_rule(path)
        if rule is None:
            return await call_next(request)

        key = f"{rule.bucket}:{_get_client_ip(request)}"
        now = time.time()
        hits = [t for t in _rate_limit_store[key] if t > now - RATE_WINDOW_SEC]
        if len(hits) >= rule.max_requests:
            _rate_limit_store[key] = hits
            logger.warning("Rate limit exceeded key=%s path=%s", key, path)
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later."},
                headers={"Retry-After": str(RATE_WINDOW_SEC)},
            )
        hits.append(now)
        _rate_limit_store[key] = hits
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, log it, and echo the id back."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        elapsed_ms = (time.perf_counter() - started) * 1000
        if request.url.path != "/health":
            logger.info(
                "method=%s path=%s status=%d duration=%.1fms",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
                extra={"request_id": request_id},
            )

        response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.1f}"
        response.headers["X-Request-ID"] = request_id
        return response
