"""Rate limiting utilities using throttled-py"""
import os
from datetime import timedelta
from throttled import Throttled, RateLimiterType, store, rate_limiter

from core.config import logger

# Redis for production, MemoryStore for development
try:
    redis_url = os.getenv("REDIS_URL", "").strip()
    if redis_url:
        # RedisStore expects the URL string, not a Redis client object
        storage = store.RedisStore(server=redis_url)
        logger.info("[rate_limit] Using Redis for rate limiting")
    else:
        storage = store.MemoryStore()
        logger.warning("[rate_limit] REDIS_URL not set - using in-memory storage (not suitable for production with multiple workers)")
except Exception as ex:
    storage = store.MemoryStore()
    logger.warning(f"[rate_limit] Redis connection failed, using in-memory storage: {ex}")


def _quota(name: str, default: int) -> int:
    try:
        return max(1, int(os.getenv(name, str(default))))
    except ValueError:
        return default


# Login attempts: per IP per 15 minutes (brute force protection)
login_throttle = Throttled(
    using=RateLimiterType.FIXED_WINDOW.value,
    quota=rate_limiter.per_duration(timedelta(minutes=15), limit=_quota("RATE_LIMIT_LOGIN_PER_15MIN", 10)),
    store=storage,
)

# Admin login: per IP per 15 minutes
admin_login_throttle = Throttled(
    using=RateLimiterType.FIXED_WINDOW.value,
    quota=rate_limiter.per_duration(timedelta(minutes=15), limit=_quota("RATE_LIMIT_ADMIN_LOGIN_PER_15MIN", 5)),
    store=storage,
)

# Seller registration: per IP per hour
seller_register_throttle = Throttled(
    using=RateLimiterType.FIXED_WINDOW.value,
    quota=rate_limiter.per_duration(timedelta(hours=1), limit=_quota("RATE_LIMIT_SELLER_REGISTER_PER_HOUR", 5)),
    store=storage,
)

# Password reset: per email per hour (prevent enumeration/abuse)
password_reset_throttle = Throttled(
    using=RateLimiterType.FIXED_WINDOW.value,
    quota=rate_limiter.per_duration(timedelta(hours=1), limit=_quota("RATE_LIMIT_PASSWORD_RESET_PER_HOUR", 5)),
    store=storage,
)


def check_rate_limit(throttle: Throttled, key: str) -> bool:
    """True when the call is allowed. Fails open if the limiter store is unavailable."""
    try:
        return not throttle.limit(key, cost=1).limited
    except Exception as ex:
        logger.warning(f"[rate_limit] check failed for {key}: {ex}")
        return True


def client_ip(request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
