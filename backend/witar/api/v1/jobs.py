# witar/api/v1/jobs.py
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.jobs import require_jobs_key
from witar.core.auto_close import auto_close_open_sessions
from witar.core.notifications import cleanup_deleted_notifications
from witar.crud.company import refresh_all_company_statuses
from witar.db.session import get_db

router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(require_jobs_key)])

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@router.post("/auto-close-time-entries")
async def run_auto_close(db: AsyncSession = Depends(get_db)):
    return await auto_close_open_sessions(db)


@router.post("/cleanup-deleted-notifications")
async def run_cleanup_deleted_notifications(db: AsyncSession = Depends(get_db)):
    now = _utcnow()
    deleted = await cleanup_deleted_notifications(db, now)
    return {"deleted": deleted, "timestamp": now.isoformat()}


@router.post("/refresh-company-status")
async def run_refresh_company_status(db: AsyncSession = Depends(get_db)):
    now = _utcnow()
    counts = await refresh_all_company_statuses(db, now)
    logger.info("Company statuses refreshed: %s", counts)
    return {"counts": counts, "timestamp": now.isoformat()}
