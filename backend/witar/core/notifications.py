# witar/core/notifications.py
"""
In-app notification helpers. They only add rows to the session; the caller
commits together with the change that triggered the notification.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from witar.core.config import settings
from witar.crud.company import get_or_create_settings
from witar.crud.membership import active_user_ids_with_roles
from witar.models.notification import DeletedNotification, Notification

logger = logging.getLogger(__name__)

TYPE_TIME_CLOCK = "time_clock"
TYPE_TIME_EDIT_REQUEST = "time_edit_request"
TYPE_REQUEST = "request"
TYPE_REQUEST_APPROVED = "request_approved"
TYPE_REQUEST_REJECTED = "request_rejected"
TYPE_EMPLOYEE = "employee"
TYPE_DOCUMENT = "document"
TYPE_INVITATION = "invitation"
TYPE_COMPANY = "company"
TYPE_WARNING = "warning"

NOTIFICATION_TYPES = (
    TYPE_TIME_CLOCK,
    TYPE_TIME_EDIT_REQUEST,
    TYPE_REQUEST,
    TYPE_REQUEST_APPROVED,
    TYPE_REQUEST_REJECTED,
    TYPE_EMPLOYEE,
    TYPE_DOCUMENT,
    TYPE_INVITATION,
    TYPE_COMPANY,
    TYPE_WARNING,
)

# company_settings flag that switches each topic on/off
_TOPIC_FLAGS = {
    TYPE_TIME_CLOCK: "notify_time_clock",
    TYPE_TIME_EDIT_REQUEST: "notify_requests",
    TYPE_REQUEST: "notify_requests",
    TYPE_REQUEST_APPROVED: "notify_requests",
    TYPE_REQUEST_REJECTED: "notify_requests",
    TYPE_EMPLOYEE: "notify_employees",
    TYPE_DOCUMENT: "notify_documents",
    TYPE_INVITATION: "notify_invitations",
    TYPE_COMPANY: "notify_system_warnings",
    TYPE_WARNING: "notify_system_warnings",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def topic_enabled(db: AsyncSession, company_id: uuid.UUID, ntype: str) -> bool:
    flag = _TOPIC_FLAGS.get(ntype)
    if flag is None:
        return True
    cs = await get_or_create_settings(db, company_id)
    return bool(getattr(cs, flag, True))


def create_notification(
    db: AsyncSession,
    *,
    company_id: uuid.UUID,
    recipient_id: Optional[uuid.UUID],
    sender_id: Optional[uuid.UUID],
    ntype: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
) -> Notification:
    if ntype not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {ntype}")
    n = Notification(
        company_id=company_id,
        recipient_id=recipient_id,
        sender_id=sender_id,
        type=ntype,
        title=title,
        message=message,
        data=data or {},
    )
    db.add(n)
    return n


async def notify_user(
    db: AsyncSession,
    *,
    company_id: uuid.UUID,
    recipient_id: uuid.UUID,
    sender_id: Optional[uuid.UUID],
    ntype: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
) -> Optional[Notification]:
    if not await topic_enabled(db, company_id, ntype):
        return None
    return create_notification(
        db,
        company_id=company_id,
        recipient_id=recipient_id,
        sender_id=sender_id,
        ntype=ntype,
        title=title,
        message=message,
        data=data,
    )


async def notify_roles(
    db: AsyncSession,
    *,
    company_id: uuid.UUID,
    roles: Iterable[str],
    sender_id: Optional[uuid.UUID],
    ntype: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
    exclude_user_id: Optional[uuid.UUID] = None,
) -> list[Notification]:
    """One notification per active member holding one of `roles`, minus the actor."""
    roles = tuple(roles)
    if not roles or not await topic_enabled(db, company_id, ntype):
        return []

    recipients = await active_user_ids_with_roles(db, company_id, roles)
    out = []
    for uid in recipients:
        if exclude_user_id is not None and uid == exclude_user_id:
            continue
        out.append(
            create_notification(
                db,
                company_id=company_id,
                recipient_id=uid,
                sender_id=sender_id,
                ntype=ntype,
                title=title,
                message=message,
                data=data,
            )
        )
    return out


async def notify_company(
    db: AsyncSession,
    *,
    company_id: uuid.UUID,
    sender_id: Optional[uuid.UUID],
    ntype: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
) -> Optional[Notification]:
    """Broadcast: a single row with recipient_id NULL."""
    if not await topic_enabled(db, company_id, ntype):
        return None
    return create_notification(
        db,
        company_id=company_id,
        recipient_id=None,
        sender_id=sender_id,
        ntype=ntype,
        title=title,
        message=message,
        data=data,
    )


async def archive_notification(db: AsyncSession, n: Notification, deleted_by: uuid.UUID) -> DeletedNotification:
    archived = DeletedNotification(
        original_id=n.id,
        company_id=n.company_id,
        recipient_id=n.recipient_id,
        sender_id=n.sender_id,
        type=n.type,
        title=n.title,
        message=n.message,
        data=dict(n.data or {}),
        read_at=n.read_at,
        created_at=n.created_at,
        deleted_by=deleted_by,
        deleted_at=_utcnow(),
    )
    db.add(archived)
    await db.delete(n)
    return archived


async def cleanup_deleted_notifications(db: AsyncSession, now: Optional[datetime] = None) -> int:
    now = now or _utcnow()
    cutoff = now - timedelta(days=settings.DELETED_NOTIFICATION_RETENTION_DAYS)
    res = await db.execute(delete(DeletedNotification).where(DeletedNotification.deleted_at < cutoff))
    await db.commit()
    deleted = int(res.rowcount or 0)
    logger.info("Purged %s deleted notifications older than %s", deleted, cutoff.isoformat())
    return deleted
