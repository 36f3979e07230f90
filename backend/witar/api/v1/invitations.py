from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.company import (
    ensure_can_add_employee,
    get_current_company,
    require_active_company,
    require_company_roles,
)
from witar.api.deps.permissions import require_permissions
from witar.api.v1.auth import get_current_user
from witar.auth.permissions import PERM
from witar.core.config import settings
from witar.core.mailer import send_invitation_email
from witar.core.notifications import TYPE_INVITATION, notify_roles
from witar.core.roles import ADMIN_ROLES, STAFF_ROLES, CompanyRole, normalize_role
from witar.core.security import hash_password
from witar.crud.membership import get_membership
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.department import Department
from witar.models.invitation import (
    INVITATION_ACCEPTED,
    INVITATION_EXPIRED,
    INVITATION_PENDING,
    INVITATION_REVOKED,
    Invitation,
)
from witar.models.user import User
from witar.schemas.invitation import (
    AcceptInvitation,
    InvitationCreate,
    InvitationLookupOut,
    InvitationOut,
)

router = APIRouter(prefix="/invitations", tags=["invitations"])

logger = logging.getLogger(__name__)

ALLOWED_INVITE_ROLES = {CompanyRole.ADMIN.value, CompanyRole.MANAGER.value, CompanyRole.EMPLOYEE.value}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _generate_token() -> str:
    return secrets.token_urlsafe(48)


def _effective_status(inv: Invitation, now: datetime) -> str:
    if inv.status == INVITATION_PENDING and inv.expires_at < now:
        return INVITATION_EXPIRED
    return inv.status


def _to_out(inv: Invitation, now: datetime, email_sent: Optional[bool] = None) -> InvitationOut:
    out = InvitationOut.model_validate(inv)
    return out.model_copy(update={"status": _effective_status(inv, now), "email_sent": email_sent})


async def _get_company_invitation(db: AsyncSession, company_id: uuid.UUID, invite_id: uuid.UUID) -> Invitation:
    inv = (
        await db.execute(
            select(Invitation)
            .where(Invitation.id == invite_id, Invitation.company_id == company_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if inv is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
    return inv


# =========================================================
# CREATE + LIST (company-scoped)
# =========================================================
@router.post("", response_model=InvitationOut, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    payload: InvitationCreate,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(require_active_company),
    member: CompanyMembership = Depends(require_permissions(PERM.INVITES_MANAGE)),
    inviter: User = Depends(get_current_user),
):
    """
    Invite a person to the current company.
    Managers can only invite employees.
    """
    email = _normalize_email(str(payload.email))
    role = normalize_role(payload.role)
    now = _utcnow()

    if role not in ALLOWED_INVITE_ROLES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid role. Allowed: {', '.join(sorted(ALLOWED_INVITE_ROLES))}",
        )

    if member.role == CompanyRole.MANAGER.value and role != CompanyRole.EMPLOYEE.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Managers can only invite employees")

    if payload.department_id is not None:
        dept = await db.get(Department, payload.department_id)
        if dept is None or dept.company_id != company.id:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown department")

    if payload.supervisor_id is not None:
        sup = await get_membership(db, company.id, payload.supervisor_id)
        if sup is None or sup.role not in STAFF_ROLES:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="supervisor_id must be an active manager of this company",
            )

    await ensure_can_add_employee(db, company.id)

    existing_user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if existing_user is not None and await get_membership(db, company.id, existing_user.id) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already a member of this company",
        )

    # Pending rows past their expiry no longer block a new invitation
    await db.execute(
        update(Invitation)
        .where(
            Invitation.company_id == company.id,
            Invitation.email == email,
            Invitation.status == INVITATION_PENDING,
            Invitation.expires_at <= now,
        )
        .values(status=INVITATION_EXPIRED)
    )

    pending_inv = (
        await db.execute(
            select(Invitation).where(
                Invitation.company_id == company.id,
                Invitation.email == email,
                Invitation.status == INVITATION_PENDING,
            )
        )
    ).scalar_one_or_none()
    if pending_inv is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A pending invitation already exists for this email",
        )

    invitation = Invitation(
        company_id=company.id,
        email=email,
        first_name=(payload.first_name or "").strip() or None,
        last_name=(payload.last_name or "").strip() or None,
        role=role,
        department_id=payload.department_id,
        supervisor_id=payload.supervisor_id,
        token=_generate_token(),
        temporary_password_hash=(
            hash_password(payload.temporary_password) if payload.temporary_password else None
        ),
        status=INVITATION_PENDING,
        expires_at=now + timedelta(days=settings.INVITE_EXPIRY_DAYS),
        invited_by=inviter.id,
    )
    db.add(invitation)
    await db.flush()

    await notify_roles(
        db,
        company_id=company.id,
        roles=ADMIN_ROLES,
        sender_id=inviter.id,
        ntype=TYPE_INVITATION,
        title="New invitation sent",
        message=f"{inviter.display_name} invited {email} as {role.lower()}.",
        data={"invitation_id": str(invitation.id), "email": email, "role": role, "action": "sent"},
        exclude_user_id=inviter.id,
    )

    await db.commit()
    await db.refresh(invitation)
    logger.info("Invitation %s created for %s in company %s", invitation.id, email, company.id)

    email_sent = await send_invitation_email(
        to=email,
        company_name=company.name,
        role=role,
        token=invitation.token,
        first_name=invitation.first_name,
        temporary_password=payload.temporary_password,
    )
    return _to_out(invitation, _utcnow(), email_sent=email_sent)


@router.get("", response_model=List[InvitationOut])
async def list_invitations(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _member: CompanyMembership = Depends(require_permissions(PERM.INVITES_MANAGE)),
):
    now = _utcnow()
    stmt = (
        select(Invitation)
        .where(Invitation.company_id == company.id)
        .order_by(Invitation.created_at.desc())
    )
    invitations = [_to_out(inv, now) for inv in (await db.execute(stmt)).scalars().all()]
    if status_filter:
        invitations = [i for i in invitations if i.status == status_filter.strip().lower()]
    return invitations


# =========================================================
# LOOKUP + ACCEPT (public)
# =========================================================
@router.get("/lookup/{token}", response_model=InvitationLookupOut)
async def lookup_invitation(token: str, db: AsyncSession = Depends(get_db)):
    inv = (await db.execute(select(Invitation).where(Invitation.token == token.strip()))).scalar_one_or_none()
    if inv is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid invitation token")

    company = await db.get(Company, inv.company_id)
    return InvitationLookupOut(
        company_id=inv.company_id,
        company_name=company.name if company else "",
        email=inv.email,
        first_name=inv.first_name,
        last_name=inv.last_name,
        role=inv.role,
        status=_effective_status(inv, _utcnow()),
        expires_at=inv.expires_at,
        has_temporary_password=inv.has_temporary_password,
    )


@router.post("/accept")
async def accept_invitation(
    payload: AcceptInvitation,
    db: AsyncSession = Depends(get_db),
):
    """
    Accept invitation by token (public).
    Creates the user if needed and creates/reactivates the membership.

    The plan limit is enforced again here: other invitations may have been
    accepted since this one was sent.
    """
    if payload.accept_tos is not True:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="accept_tos must be true")

    token = (payload.token or "").strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="token is required")

    inv = (
        await db.execute(
            select(Invitation)
            .where(Invitation.token == token)
            .with_for_update()
        )
    ).scalar_one_or_none()

    if inv is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid invitation token")

    if inv.status == INVITATION_ACCEPTED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Invitation already accepted")

    if inv.status == INVITATION_REVOKED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Invitation was revoked")

    if inv.status == INVITATION_EXPIRED or inv.expires_at < _utcnow():
        if inv.status != INVITATION_EXPIRED:
            inv.status = INVITATION_EXPIRED
            await db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invitation expired")

    email = _normalize_email(inv.email)
    invite_role = normalize_role(inv.role)

    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        user = User(email=email, is_active=True)
        db.add(user)
        await db.flush()

    membership = (
        await db.execute(
            select(CompanyMembership)
            .where(
                CompanyMembership.company_id == inv.company_id,
                CompanyMembership.user_id == user.id,
            )
            .with_for_update()
        )
    ).scalar_one_or_none()

    if membership is not None and membership.is_active:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already has an active role in this company",
        )

    await ensure_can_add_employee(db, inv.company_id)

    if membership is None:
        membership = CompanyMembership(
            company_id=inv.company_id,
            user_id=user.id,
            role=invite_role,
            permissions=[],
            department_id=inv.department_id,
            supervisor_id=inv.supervisor_id,
            accepted_terms=True,
            notifications_opt_in=payload.accept_notifications,
            is_active=True,
        )
        db.add(membership)
    else:
        membership.is_active = True
        membership.role = invite_role
        membership.department_id = inv.department_id
        membership.supervisor_id = inv.supervisor_id
        membership.accepted_terms = True
        membership.notifications_opt_in = payload.accept_notifications

    if not user.full_name and inv.full_name:
        user.full_name = inv.full_name

    if inv.temporary_password_hash and not user.password_hash:
        user.password_hash = inv.temporary_password_hash
        user.must_change_password = True

    inv.status = INVITATION_ACCEPTED
    inv.accepted_at = _utcnow()
    inv.accepted_by_user_id = user.id

    await notify_roles(
        db,
        company_id=inv.company_id,
        roles=ADMIN_ROLES,
        sender_id=user.id,
        ntype=TYPE_INVITATION,
        title="Invitation accepted",
        message=f"{inv.full_name or email} joined the company as {invite_role.lower()}.",
        data={"invitation_id": str(inv.id), "user_id": str(user.id), "action": "accepted"},
        exclude_user_id=user.id,
    )

    await db.commit()
    logger.info("Invitation %s accepted by user %s", inv.id, user.id)

    return {
        "status": "ok",
        "company_id": str(inv.company_id),
        "user_id": str(user.id),
        "role": membership.role,
    }


# =========================================================
# MANAGE (OWNER/ADMIN)
# =========================================================
@router.post("/{invite_id}/revoke", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_invitation(
    invite_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _membership: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    inv = await _get_company_invitation(db, company.id, invite_id)

    if inv.status != INVITATION_PENDING:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Invitation already {inv.status}")

    inv.status = INVITATION_REVOKED
    await db.commit()
    logger.info("Invitation %s revoked", inv.id)
    return None


@router.post("/{invite_id}/resend", response_model=InvitationOut)
async def resend_invitation(
    invite_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(require_active_company),
    _membership: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    inv = await _get_company_invitation(db, company.id, invite_id)

    if inv.status != INVITATION_PENDING:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Invitation already {inv.status}")

    inv.expires_at = _utcnow() + timedelta(days=settings.INVITE_EXPIRY_DAYS)
    await db.commit()
    await db.refresh(inv)

    # the temporary password is only known at creation time
    email_sent = await send_invitation_email(
        to=inv.email,
        company_name=company.name,
        role=inv.role,
        token=inv.token,
        first_name=inv.first_name,
    )
    return _to_out(inv, _utcnow(), email_sent=email_sent)


@router.delete("/{invite_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invitation(
    invite_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _membership: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    inv = await _get_company_invitation(db, company.id, invite_id)

    if inv.status == INVITATION_ACCEPTED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Accepted invitations cannot be deleted")

    await db.delete(inv)
    await db.commit()
    return None
