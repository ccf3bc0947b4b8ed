import asyncio
import logging
import time
import uuid
from collections import defaultdict, deque
from typing import Deque, DefaultDict, Optional

from fastapi import Request, Response
from redis.asyncio import Redis
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from skillpath.core.config import settings
from skillpath.core.logging import request_id_var

logger = logging.getLogger("skillpath.middleware")

_SLIDING_WINDOW_LUA = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
redis.call('ZREMRANGEBYSCORE', key, 0, now - window)
if redis.call('ZCARD', key) >= limit then
    return 0
end
redis.call('ZADD', key, now, now)
redis.call('EXPIRE', key, math.ceil(window / 1000))
return 1
"""


class RequestIdMiddleware(BaseHTTPMiddleware):
    header_name = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[self.header_name] = request_id
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding one-minute window per client, shared through Redis when configured."""

    window_seconds = 60

    def __init__(self, app):
        super().__init__(app)
        self.max_requests = settings.rate_limit_per_minute
        self._requests: DefaultDict[str, Deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._redis: Optional[Redis] = None
        self._seen = 0
        if settings.redis_url:
            self._redis = Redis.from_url(settings.redis_url, decode_responses=True)

    @staticmethod
    def _client_key(request: Request) -> str:
        header_key = settings.rate_limit_key_header
        header_val = request.headers.get(header_key) if header_key else None
        ip = request.client.host if request.client else "unknown"
        return f"{ip}:{header_val}" if header_val else ip

    async def _allowed_by_redis(self, key: str) -> bool | None:
        if self._redis is None:
            return None
        try:
            allowed = await self._redis.eval(
                _SLIDING_WINDOW_LUA,
                1,
                f"rate:{key}",
                int(time.time() * 1000),
                self.window_seconds * 1000,
                self.max_requests,
            )
        except Exception:  # noqa: BLE001
            logger.warning("rate_limit_redis_error", exc_info=True)
            return None
        return int(allowed) == 1

    async def _allowed_in_memory(self, key: str) -> bool:
        now = time.monotonic()
        async with self._lock:
            hits = self._requests[key]
            while hits and now - hits[0] > self.window_seconds:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            self._seen += 1
            if self._seen % 500 == 0:
                self._evict(now)
        return True

    def _evict(self, now: float) -> None:
        for key in [k for k, q in self._requests.items() if not q or now - q[-1] > self.window_seconds]:
            self._requests.pop(key, None)
        max_keys = settings.rate_limit_max_keys
        overflow = len(self._requests) - max_keys
        if max_keys > 0 and overflow > 0:
            oldest = sorted(self._requests.items(), key=lambda item: item[1][-1] if item[1] else 0.0)
            for key, _ in oldest[:overflow]:
                self._requests.pop(key, None)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.max_requests <= 0:
            return await call_next(request)

        key = self._client_key(request)
        allowed = await self._allowed_by_redis(key)
        if allowed is None:
            allowed = await self._allowed_in_memory(key)
        if not allowed:
            logger.warning("rate_limited", extra={"client_key": key})
            return JSONResponse({"detail": "Rate limit exceeded"}, status_code=429)
        return await call_next(request)
