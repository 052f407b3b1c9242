from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from typing import Optional
import time
import redis
import structlog
from email_tracker.core.config import Settings

logger = structlog.get_logger()

# Tracking pixels and redirects are never throttled
RATE_LIMITED_PREFIX = "/api/"


class RedisTokenBucket:
    """Redis-backed rate limiter with an in-memory token bucket fallback"""

    def __init__(self, rate: int, period: int, redis_url: Optional[str] = None):
        """
        Args:
            rate: Number of requests allowed
            period: Time period in seconds
            redis_url: Redis connection URL; None keeps buckets in memory
        """
        self.rate = rate
        self.period = period
        self.use_redis = False
        self.buckets = {}
        self._last_prune = time.time()

        if redis_url:
            try:
                self.redis_client = redis.from_url(redis_url, decode_responses=False)
                self.redis_client.ping()
                self.use_redis = True
                logger.info("rate_limiter_using_redis")
            except redis.RedisError as e:
                logger.warning("rate_limiter_redis_failed_using_memory", error=str(e))

    def is_allowed(self, key: str) -> bool:
        """
        Check if request is allowed for given key

        Args:
            key: Identifier (e.g., IP address or API key)

        Returns:
            True if allowed, False if rate limit exceeded
        """
        if self.use_redis:
            return self._is_allowed_redis(key)
        else:
            return self._is_allowed_memory(key)

    def _is_allowed_redis(self, key: str) -> bool:
        """Redis-based rate limiting using sliding window"""
        redis_key = f"email_tracker:rate_limit:{key}"
        now = time.time()
        window_start = now - self.period

        pipe = self.redis_client.pipeline()

        # Remove old entries outside the window
        pipe.zremrangebyscore(redis_key, 0, window_start)

        # Count requests in current window
        pipe.zcard(redis_key)

        # Add current request
        pipe.zadd(redis_key, {str(now): now})

        # Set expiry
        pipe.expire(redis_key, self.period)

        results = pipe.execute()

        # results[1] is the count before adding current request
        return results[1] < self.rate

    def _is_allowed_memory(self, key: str) -> bool:
        """Fallback: in-memory token bucket"""
        now = time.time()
        self._prune_idle_buckets(now)
        bucket = self.buckets.setdefault(key, {"tokens": self.rate, "last_update": now})

        # Refill tokens based on time passed
        time_passed = now - bucket["last_update"]
        bucket["last_update"] = now
        bucket["tokens"] = min(self.rate, bucket["tokens"] + (time_passed / self.period) * self.rate)

        if bucket["tokens"] >= 1:
            bucket["tokens"] -= 1
            return True

        return False

    def _prune_idle_buckets(self, now: float):
        """Drop buckets untouched for a full period; they would be refilled anyway"""
        if now - self._last_prune < self.period:
            return
        self._last_prune = now
        idle = [key for key, bucket in self.buckets.items() if now - bucket["last_update"] >= self.period]
        for key in idle:
            del self.buckets[key]

    def get_remaining(self, key: str) -> int:
        """Get remaining requests for a key"""
        if self.use_redis:
            redis_key = f"email_tracker:rate_limit:{key}"
            now = time.time()
            count = self.redis_client.zcount(redis_key, now - self.period, now)
            return max(0, self.rate - count)

        bucket = self.buckets.get(key)
        if not bucket:
            return self.rate
        return int(bucket["tokens"])


def build_rate_limit_middleware(settings: Settings):
    """
    Rate limiting middleware for the /api routes

    Limits requests per IP address or API key
    """
    limiter = RedisTokenBucket(
        rate=settings.rate_limit_requests,
        period=settings.rate_limit_period,
        redis_url=settings.redis_url
    )
    limit_headers = {
        "X-RateLimit-Limit": str(settings.rate_limit_requests),
        "X-RateLimit-Reset": str(settings.rate_limit_period),
    }

    async def check(method, key):
        # The redis client is synchronous, keep its round trips off the event loop
        if limiter.use_redis:
            return await run_in_threadpool(method, key)
        return method(key)

    async def rate_limit_middleware(request: Request, call_next):
        if not request.url.path.startswith(RATE_LIMITED_PREFIX):
            return await call_next(request)

        # Determine rate limit key (API key or IP address)
        api_key = request.headers.get("X-API-Key")
        if api_key and settings.api_key and api_key == settings.api_key:
            rate_limit_key = f"api_key:{api_key}"
        else:
            client_ip = request.client.host if request.client else "unknown"
            rate_limit_key = f"ip:{client_ip}"

        if not await check(limiter.is_allowed, rate_limit_key):
            remaining = await check(limiter.get_remaining, rate_limit_key)

            logger.warning(
                "rate_limit_exceeded",
                key=rate_limit_key,
                path=request.url.path,
                remaining=remaining
            )

            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": "Rate limit exceeded. Please try again later.",
                    "retry_after": settings.rate_limit_period
                },
                headers={
                    **limit_headers,
                    "X-RateLimit-Remaining": str(max(0, remaining)),
                    "Retry-After": str(settings.rate_limit_period)
                }
            )

        response = await call_next(request)

        for name, value in limit_headers.items():
            response.headers[name] = value
        response.headers["X-RateLimit-Remaining"] = str(max(0, await check(limiter.get_remaining, rate_limit_key)))

        return response

    rate_limit_middleware.limiter = limiter
    return rate_limit_middleware
