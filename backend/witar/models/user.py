# backend/witar/models/user.py
import re
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, Uuid
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column

from witar.db.base import Base
from witar.db.types import UTCDateTime, utcnow

_E164_RE = re.compile(r"^\+[1-9]\d{1,14}$")


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)

    # Email-first magic code auth
    magic_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    magic_code_expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    phone_e164: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)  # ISO-3166-1 alpha-2 (e.g., ES)

    # Password login (set from an invitation's temporary password or by the user)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    must_change_password: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Forgot-password flow: only the sha256 of the emailed token is stored
    password_reset_token_hash: Mapped[Optional[str]] = mapped_column(String(64), unique=True, index=True, nullable=True)
    password_reset_expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @hybrid_property
    def is_profile_complete(self) -> bool:
        # profile_complete = full_name is not null AND phone_e164 is not null
        return self.full_name is not None and self.phone_e164 is not None

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    @staticmethod
    def normalize_full_name(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        v = " ".join(value.strip().split())
        return v or None

    @staticmethod
    def normalize_phone_e164(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        v = value.strip()
        if not v:
            return None
        v = re.sub(r"[^\d+]", "", v)
        if not _E164_RE.match(v):
            raise ValueError("phone_e164 must be a valid E.164 number (e.g., +34612345678).")
        return v

    @staticmethod
    def normalize_country(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        v = value.strip()
        if not v:
            return None
        v = v.upper()
        if not re.fullmatch(r"[A-Z]{2}", v):
            raise ValueError("country must be a 2-letter ISO code (e.g., ES).")
        return v
