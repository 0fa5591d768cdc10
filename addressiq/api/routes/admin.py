import hmac

import redis
from fastapi import APIRouter, Depends, Header, HTTPException

from addressiq.api.deps import get_cache, get_settings
from addressiq.core.config import Settings
from addressiq.core.logging import get_logger
from addressiq.services.cache import Cache

logger = get_logger(__name__)

router = APIRouter()


@router.post("/cache/flush")
def flush_cache(
    x_admin_secret: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
    cache: Cache | None = Depends(get_cache),
) -> dict[str, str]:
    if not settings.admin_secret:
        logger.warning("cache flush attempted but ADMIN_SECRET is not configured")
        raise HTTPException(status_code=403, detail="admin endpoint not configured")
    if not hmac.compare_digest((x_admin_secret or "").encode("utf-8"), settings.admin_secret.encode("utf-8")):
        logger.warning("unauthorized cache flush attempt")
        raise HTTPException(status_code=401, detail="unauthorized")
    if cache is None:
        raise HTTPException(status_code=503, detail="cache service not available")

    try:
        cache.flush()
    except redis.RedisError as exc:
        logger.warning("cache flush failed: %s", exc)
        raise HTTPException(status_code=503, detail="cache service not available") from exc

    logger.info("cache flushed via admin endpoint")
    return {"status": "flushed"}
