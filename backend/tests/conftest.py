from __future__ import annotations

import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Settings are read at import time, so the test environment goes first.
_TEST_DB = Path(tempfile.mkdtemp(prefix="witar-tests-")) / "witar.sqlite3"
os.environ["DATABASE_URL_ASYNC"] = f"sqlite+aiosqlite:///{_TEST_DB}"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET"] = "test-secret-not-for-production-use-0123456789"
os.environ["RETURN_MAGIC_CODE_IN_RESPONSE"] = "true"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("JOBS_API_KEY", None)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from witar.core.config import settings
from witar.core.security import create_access_token, hash_password
from witar.db.base import Base
from witar.db.session import get_db
import witar.models  # noqa: F401
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.company_settings import CompanySettings
from witar.models.user import User


# ---------------------------------------------------------
# Engine + schema lifecycle
# ---------------------------------------------------------
@pytest_asyncio.fixture(scope="session")
async def engine():
    engine = create_async_engine(settings.DATABASE_URL_ASYNC, future=True, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="session")
def sessionmaker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


# ---------------------------------------------------------
# AUTOUSE: clean DB before every test
# ---------------------------------------------------------
@pytest_asyncio.fixture(autouse=True)
async def _clean_tables(engine):
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(delete(table))
    yield


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "DOCUMENT_STORAGE_DIR", str(tmp_path / "documents"))
    monkeypatch.setattr(settings, "RESEND_API_KEY", None)
    monkeypatch.setattr(settings, "JOBS_API_KEY", None)


# ---------------------------------------------------------
# DB session for assertions / setup
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup & assertions ONLY.
    """
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker):
    from witar.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------
class Seed:
    """Direct inserts for test setup. Every helper commits."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def user(self, email: str, *, password: Optional[str] = None, full_name: Optional[str] = None) -> User:
        user = User(
            email=email.lower(),
            full_name=full_name,
            password_hash=hash_password(password) if password else None,
            is_active=True,
        )
        self.db.add(user)
        await self.db.commit()
        return user

    async def company(
        self,
        owner: User,
        *,
        name: str = "Acme",
        status: str = "trial",
        created_at: Optional[datetime] = None,
        **settings_kw,
    ) -> Company:
        company = Company(
            name=name,
            slug=f"{name.lower()}-{uuid.uuid4().hex[:8]}",
            status=status,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self.db.add(company)
        await self.db.flush()
        self.db.add(CompanySettings(company_id=company.id, **settings_kw))
        self.db.add(
            CompanyMembership(
                company_id=company.id,
                user_id=owner.id,
                role="OWNER",
                permissions=[],
                accepted_terms=True,
                is_active=True,
            )
        )
        await self.db.commit()
        return company

    async def member(
        self,
        company: Company,
        email: str,
        role: str = "EMPLOYEE",
        *,
        is_active: bool = True,
        full_name: Optional[str] = None,
        **kw,
    ) -> tuple[User, CompanyMembership]:
        user = await self.user(email, full_name=full_name)
        m = CompanyMembership(
            company_id=company.id,
            user_id=user.id,
            role=role,
            permissions=kw.pop("permissions", []),
            accepted_terms=True,
            is_active=is_active,
            **kw,
        )
        self.db.add(m)
        await self.db.commit()
        return user, m

    def headers(self, user: User, company: Optional[Company] = None) -> dict[str, str]:
        h = {"Authorization": f"Bearer {create_access_token(subject=str(user.id))}"}
        if company is not None:
            h["X-Company-Id"] = str(company.id)
        return h


@pytest.fixture()
def seed(db) -> Seed:
    return Seed(db)
