# backend/witar/api/v1/auth.py
from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from witar.core.config import settings
from witar.core.mailer import send_magic_code_email, send_password_reset_email
from witar.core.security import (
    bearer_scheme,
    create_access_token,
    decode_access_token,
    hash_password,
    hash_reset_token,
    new_reset_token,
    verify_password,
)
from witar.db.session import get_db
from witar.models.user import User
from witar.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    MagicCodeRequest,
    MagicCodeVerify,
    MeResponse,
    PasswordLogin,
    ProfileUpdateRequest,
    ResetPasswordRequest,
    TokenResponse,
)

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)

MAGIC_CODE_EXPIRY_MINUTES = 10
PASSWORD_RESET_EXPIRY_MINUTES = 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _should_return_magic_code_in_response() -> bool:
    # Never in production; elsewhere it simplifies Swagger testing.
    if settings.is_production:
        return False
    return settings.RETURN_MAGIC_CODE_IN_RESPONSE


async def purge_expired_magic_codes(db: AsyncSession) -> None:
    """
    Clear all expired magic codes globally.
    """
    stmt = (
        update(User)
        .where(User.magic_code_expires_at.is_not(None))
        .where(User.magic_code_expires_at < _utcnow())
        .values(magic_code=None, magic_code_expires_at=None)
    )
    await db.execute(stmt)


def _issue_token(user: User) -> TokenResponse:
    access_token = create_access_token(
        subject=str(user.id),
        expires_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )
    return TokenResponse(access_token=access_token, must_change_password=user.must_change_password)


@router.post("/request-code")
async def request_code(payload: MagicCodeRequest, db: AsyncSession = Depends(get_db)):
    """
    Body: {"email": "user@example.com"}
    Generates a magic code (stored on user record) and emails it.
    """
    email = payload.email.strip().lower()

    await purge_expired_magic_codes(db)

    res = await db.execute(select(User).where(User.email == email))
    user = res.scalar_one_or_none()

    if user is None:
        user = User(email=email, is_active=True)
        db.add(user)
        await db.flush()

    code = str(secrets.randbelow(900000) + 100000)  # 6 digits
    expires_at = _utcnow() + timedelta(minutes=MAGIC_CODE_EXPIRY_MINUTES)

    user.magic_code = code
    user.magic_code_expires_at = expires_at

    await db.commit()

    await send_magic_code_email(to=email, code=code, expires_in_minutes=MAGIC_CODE_EXPIRY_MINUTES)

    resp = {"status": "ok", "expires_in_minutes": MAGIC_CODE_EXPIRY_MINUTES}
    if _should_return_magic_code_in_response():
        resp["code"] = code
    return resp


@router.post("/verify-code", response_model=TokenResponse)
async def verify_code(payload: MagicCodeVerify, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    """
    Body: {"email":"user@example.com","code":"123456"}
    Returns: access_token
    """
    email = payload.email.strip().lower()
    code = payload.code.strip()

    if not code:
        raise HTTPException(status_code=400, detail="code is required")

    res = await db.execute(select(User).where(User.email == email))
    user = res.scalar_one_or_none()

    if not user or not user.magic_code or not user.magic_code_expires_at:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    if user.magic_code != code:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    if user.magic_code_expires_at < _utcnow():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Code expired")

    # One-time use
    user.magic_code = None
    user.magic_code_expires_at = None
    await db.commit()

    return _issue_token(user)


@router.post("/login", response_model=TokenResponse)
async def login(payload: PasswordLogin, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    email = payload.email.strip().lower()

    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None or not verify_password(user.password_hash, payload.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User inactive")

    logger.info("Password login for user %s", user.id)
    return _issue_token(user)


async def get_current_user(
    credentials=Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency for protected endpoints.
    """
    token = credentials.credentials
    user_id = decode_access_token(token)

    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        user_uuid = uuid.UUID(str(user_id))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    user = await db.get(User, user_uuid)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User inactive")

    return user


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Current password is required unless none is set yet, or the account is
    still on an invitation's temporary password.
    """
    if user.password_hash and not user.must_change_password:
        if not verify_password(user.password_hash, payload.current_password):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect")

    user.password_hash = hash_password(payload.new_password)
    user.must_change_password = False
    await db.commit()

    logger.info("Password changed for user %s", user.id)
    return {"status": "ok"}


@router.post("/forgot-password")
async def forgot_password(payload: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    """
    Body: {"email": "user@example.com"}
    Emails a single-use reset link. The answer is the same whether or not
    the address has an account.
    """
    email = payload.email.strip().lower()
    resp = {"status": "ok", "expires_in_minutes": PASSWORD_RESET_EXPIRY_MINUTES}

    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None or not user.is_active:
        return resp

    token = new_reset_token()
    user.password_reset_token_hash = hash_reset_token(token)
    user.password_reset_expires_at = _utcnow() + timedelta(minutes=PASSWORD_RESET_EXPIRY_MINUTES)
    await db.commit()

    await send_password_reset_email(to=email, token=token, expires_in_minutes=PASSWORD_RESET_EXPIRY_MINUTES)
    logger.info("Password reset requested for user %s", user.id)

    if _should_return_magic_code_in_response():
        resp["reset_token"] = token
    return resp


@router.post("/reset-password")
async def reset_password(payload: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    """
    Body: {"token": "...", "new_password": "..."}
    """
    token_hash = hash_reset_token(payload.token.strip())
    user = (
        await db.execute(select(User).where(User.password_reset_token_hash == token_hash))
    ).scalar_one_or_none()

    if (
        user is None
        or not user.is_active
        or user.password_reset_expires_at is None
        or user.password_reset_expires_at < _utcnow()
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "INVALID_RESET_TOKEN", "message": "The reset link is invalid or has expired."},
        )

    user.password_hash = hash_password(payload.new_password)
    user.must_change_password = False
    user.password_reset_token_hash = None
    user.password_reset_expires_at = None
    await db.commit()

    logger.info("Password reset for user %s", user.id)
    return {"status": "ok"}


def _to_me_response(user: User) -> MeResponse:
    return MeResponse(
        id=str(user.id),
        email=user.email,
        is_active=user.is_active,
        full_name=user.full_name,
        phone_e164=user.phone_e164,
        country=user.country,
        profile_complete=user.is_profile_complete,
        must_change_password=user.must_change_password,
    )


@router.get("/me", response_model=MeResponse)
async def me(user: User = Depends(get_current_user)) -> MeResponse:
    return _to_me_response(user)


@router.patch("/me", response_model=MeResponse)
async def update_me(
    payload: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MeResponse:
    """
    Updates current user profile fields (post-login profile completion).
    """
    data = payload.model_dump(exclude_unset=True)

    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    if "full_name" in data:
        user.full_name = User.normalize_full_name(data["full_name"])

    if "phone_e164" in data:
        try:
            user.phone_e164 = User.normalize_phone_e164(data["phone_e164"])
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    if "country" in data:
        try:
            user.country = User.normalize_country(data["country"])
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    db.add(user)
    await db.commit()
    await db.refresh(user)

    return _to_me_response(user)
