# witar/api/v1/notifications.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.company import get_current_company, get_current_membership
from witar.core.notifications import archive_notification
from witar.core.roles import ADMIN_ROLES
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.notification import DeletedNotification, Notification
from witar.schemas.notification import DeletedNotificationOut, NotificationOut, UnreadCountOut

router = APIRouter(prefix="/notifications", tags=["notifications"])

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _mine(company_id: uuid.UUID, user_id: uuid.UUID):
    # addressed to the user, or broadcast to the company
    return (
        Notification.company_id == company_id,
        or_(Notification.recipient_id == user_id, Notification.recipient_id.is_(None)),
    )


async def _get_my_notification(
    db: AsyncSession,
    company_id: uuid.UUID,
    user_id: uuid.UUID,
    notification_id: uuid.UUID,
) -> Notification:
    n = (
        await db.execute(select(Notification).where(Notification.id == notification_id, *_mine(company_id, user_id)))
    ).scalar_one_or_none()
    if n is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return n


@router.get("", response_model=List[NotificationOut])
async def list_notifications(
    limit: int = Query(default=50, ge=1, le=200),
    unread_only: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    stmt = (
        select(Notification)
        .where(*_mine(company.id, member.user_id))
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    if unread_only:
        stmt = stmt.where(Notification.read_at.is_(None))
    return list((await db.execute(stmt)).scalars().all())


@router.get("/unread-count", response_model=UnreadCountOut)
async def unread_count(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    stmt = select(func.count(Notification.id)).where(
        *_mine(company.id, member.user_id),
        Notification.read_at.is_(None),
    )
    return UnreadCountOut(unread=int((await db.execute(stmt)).scalar() or 0))


@router.get("/deleted", response_model=List[DeletedNotificationOut])
async def deleted_notifications(
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    stmt = (
        select(DeletedNotification)
        .where(DeletedNotification.company_id == company.id)
        .where(
            or_(
                DeletedNotification.recipient_id == member.user_id,
                DeletedNotification.deleted_by == member.user_id,
            )
        )
        .order_by(DeletedNotification.deleted_at.desc())
        .limit(limit)
    )
    return list((await db.execute(stmt)).scalars().all())


@router.post("/read-all")
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    res = await db.execute(
        update(Notification)
        .where(
            Notification.company_id == company.id,
            # personal only; broadcasts are marked through /{id}/read
            Notification.recipient_id == member.user_id,
            Notification.read_at.is_(None),
        )
        .values(read_at=_utcnow())
    )
    await db.commit()
    return {"status": "ok", "updated": int(res.rowcount or 0)}


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    n = await _get_my_notification(db, company.id, member.user_id, notification_id)
    if n.read_at is None:
        n.read_at = _utcnow()
        await db.commit()
        await db.refresh(n)
    return n


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    """
    Moves the notification to the deleted history. A broadcast is shared by
    the whole company, so only OWNER/ADMIN may remove it.
    """
    n = await _get_my_notification(db, company.id, member.user_id, notification_id)
    if n.recipient_id is None and member.role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only an administrator can delete a company-wide notification",
        )

    await archive_notification(db, n, deleted_by=member.user_id)
    await db.commit()
    logger.info("Notification %s archived by %s", notification_id, member.user_id)
    return None
