import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from witar.core.config import settings


async def require_jobs_key(
    x_jobs_key: Optional[str] = Header(default=None, alias="X-Jobs-Key"),
) -> None:
    """
    Scheduled jobs are triggered by an external cron over HTTP with a shared key.
    """
    if not settings.JOBS_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Jobs endpoints are disabled (JOBS_API_KEY is not set)",
        )
    if not x_jobs_key or not secrets.compare_digest(x_jobs_key, settings.JOBS_API_KEY):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid jobs key")
