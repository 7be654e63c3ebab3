from datetime import datetime, timezone

from fastapi import Header, HTTPException, Request
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_429_TOO_MANY_REQUESTS

from .cache import cache
from .config import settings

def require_api_key(x_api_key: str | None = Header(default=None, alias="x-api-key")):
    """Header check against API_KEY; open when no key is configured."""
    if settings.API_KEY and x_api_key != settings.API_KEY:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid API key")

def _caller(request: Request) -> str:
    # API key when present, else client address
    api_key = request.headers.get("x-api-key")
    if api_key:
        return f"key:{api_key}"
    return f"ip:{request.client.host if request.client else 'unknown'}"

def rate_limit(request: Request):
    """
    Fixed one-minute window per caller. Estimates fan out to a paid property
    search, so the limit applies before the oracle is touched.
    """
    window = datetime.now(timezone.utc).strftime("%Y%m%d%H%M")
    count = cache.incr(f"rate:{_caller(request)}:{window}", ttl_seconds=60)
    if count > max(1, settings.RATE_LIMIT_RPM):
        raise HTTPException(
            status_code=HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit of {settings.RATE_LIMIT_RPM} requests per minute exceeded",
            headers={"Retry-After": str(60 - datetime.now(timezone.utc).second)},
        )
