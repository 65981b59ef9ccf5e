# services/rate_limit.py
import logging
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from config import Settings

logger = logging.getLogger(__name__)

# burst protection + hourly analysis quota, per client address
ANALYSIS_LIMITS = "10/minute;50/hour"
DEVELOPMENT_LIMITS = "1000/minute"
GENERAL_REQUESTS_PER_HOUR = 100

# The decorator needs one module-level limiter; the limits it enforces come
# from whichever app is serving the current request.
limiter = Limiter(key_func=get_remote_address)


@dataclass(frozen=True)
class RateLimits:
    enabled: bool = True
    analysis: str = ANALYSIS_LIMITS


_current: ContextVar[RateLimits] = ContextVar("rate_limits", default=RateLimits())


def limits_for(settings: Settings) -> RateLimits:
    return RateLimits(
        enabled=settings.rate_limit_enabled,
        analysis=DEVELOPMENT_LIMITS if settings.is_development else ANALYSIS_LIMITS,
    )


def use_limits(limits: RateLimits) -> Token:
    return _current.set(limits)


def release_limits(token: Token) -> None:
    _current.reset(token)


def analysis_limits() -> str:
    return _current.get().analysis


def rate_limiting_disabled() -> bool:
    return not _current.get().enabled


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    client = get_remote_address(request)
    logger.warning("rate limit exceeded for %s on %s (%s)", client, request.url.path, exc.detail)
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "Too many requests",
            "code": "RATE_LIMITED",
            "message": f"Rate limit exceeded: {exc.detail}. Please slow down and try again later.",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        },
    )
