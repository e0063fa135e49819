"""Per-client sliding-window limits for login, registration, proposals and contact reveals."""

import logging
import math
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from ..auth.deps import SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatePolicy:
    route_key: str
    limit: int
    window_seconds: int


@dataclass
class RateDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class InMemoryRateLimiter:
    """Recent hit times per key, trimmed on every check. Process-local."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def check(self, key: str, limit: int, window_seconds: int) -> RateDecision:
        now = self._clock()
        with self._lock:
            hits = self._hits[key]
            while hits and now - hits[0] >= window_seconds:
                hits.popleft()
            if len(hits) < limit:
                hits.append(now)
                return RateDecision(allowed=True, remaining=limit - len(hits))
            wait = window_seconds - (now - hits[0])
            return RateDecision(allowed=False, remaining=0, retry_after_seconds=max(1, math.ceil(wait)))

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


limiter = InMemoryRateLimiter()


def _client_identifier(request: Request) -> str:
    # Signed-in callers are limited per credential; JWT headers are identical
    # across tokens, so the signature tail is used.
    cookie = request.cookies.get(SESSION_COOKIE_NAME, "").strip()
    if cookie:
        return f"session:{cookie[-16:]}"
    scheme, _, credential = request.headers.get("authorization", "").strip().partition(" ")
    if scheme.lower() == "bearer" and credential.strip():
        return f"token:{credential.strip()[-16:]}"
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        return f"ip:{forwarded}"
    return f"ip:{request.client.host}" if request.client and request.client.host else "unknown"


def rate_limit_dependency(route_key: str, limit: int, window_seconds: int):
    policy = RatePolicy(route_key=route_key, limit=limit, window_seconds=window_seconds)

    def _dep(request: Request) -> None:
        ident = _client_identifier(request)
        decision = limiter.check(f"{policy.route_key}:{ident}", limit=policy.limit, window_seconds=policy.window_seconds)
        if decision.allowed:
            return
        logger.warning(f"[rate_limit] {policy.route_key} throttled client={ident} retry_after={decision.retry_after_seconds}s")
        raise HTTPException(
            status_code=429,
            detail=f"Too many requests. Retry in {decision.retry_after_seconds}s",
            headers={"Retry-After": str(decision.retry_after_seconds)},
        )

    return Depends(_dep)
