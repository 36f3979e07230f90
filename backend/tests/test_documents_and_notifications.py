# tests/test_documents_and_notifications.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy import select

from witar.core.config import settings
from witar.core.notifications import cleanup_deleted_notifications
from witar.models.document import Document
from witar.models.notification import DeletedNotification, Notification

PDF = b"%PDF-1.4 fake payroll"


async def upload(client, headers, *, title="Payroll March", user_id=None, category="payroll", name="march.pdf",
                 ctype="application/pdf", content=PDF):
    data = {"title": title, "category": category}
    if user_id is not None:
        data["user_id"] = str(user_id)
    return await client.post(
        "/api/v1/documents",
        data=data,
        files={"file": (name, content, ctype)},
        headers=headers,
    )


def stored_path(company_id, storage_name: str) -> Path:
    return Path(settings.DOCUMENT_STORAGE_DIR) / str(company_id) / storage_name


# ---------------------------------------------------------
# Documents
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_upload_download_and_delete(client, seed, db):
    owner = await seed.user("owner@example.com", full_name="Olga")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")

    r = await upload(client, seed.headers(owner, company), user_id=emp.id)
    assert r.status_code == 201
    doc = r.json()
    assert doc["file_size"] == len(PDF)
    assert doc["content_type"] == "application/pdf"
    assert doc["user_id"] == str(emp.id)

    row = (await db.execute(select(Document).where(Document.id == uuid.UUID(doc["id"])))).scalar_one()
    assert row.storage_name != "march.pdf"
    assert stored_path(company.id, row.storage_name).read_bytes() == PDF

    note = (await db.execute(select(Notification).where(Notification.type == "document"))).scalar_one()
    assert note.recipient_id == emp.id
    assert note.message == 'Olga shared "Payroll March" with you'

    r = await client.get(f"/api/v1/documents/{doc['id']}/download", headers=seed.headers(emp, company))
    assert r.status_code == 200
    assert r.content == PDF

    r = await client.delete(f"/api/v1/documents/{doc['id']}", headers=seed.headers(emp, company))
    assert r.status_code == 403

    r = await client.delete(f"/api/v1/documents/{doc['id']}", headers=seed.headers(owner, company))
    assert r.status_code == 204
    assert not stored_path(company.id, row.storage_name).exists()


@pytest.mark.asyncio
async def test_document_visibility(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    other, _ = await seed.member(company, "other@example.com")
    headers = seed.headers(owner, company)

    mine = (await upload(client, headers, title="For Eva", user_id=emp.id)).json()
    theirs = (await upload(client, headers, title="For Other", user_id=other.id)).json()
    shared = (await upload(client, headers, title="Handbook", category="policy")).json()

    r = await client.get("/api/v1/documents", headers=seed.headers(emp, company))
    assert {d["id"] for d in r.json()} == {mine["id"], shared["id"]}

    r = await client.get("/api/v1/documents/me", headers=seed.headers(emp, company))
    assert {d["id"] for d in r.json()} == {mine["id"], shared["id"]}

    r = await client.get("/api/v1/documents", headers=headers)
    assert len(r.json()) == 3

    r = await client.get("/api/v1/documents", params={"category": "policy"}, headers=headers)
    assert [d["id"] for d in r.json()] == [shared["id"]]

    r = await client.get(f"/api/v1/documents/{theirs['id']}/download", headers=seed.headers(emp, company))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_company_wide_document_is_broadcast(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)

    await upload(client, seed.headers(owner, company), title="Handbook", category="policy")

    note = (await db.execute(select(Notification).where(Notification.company_id == company.id))).scalar_one()
    assert note.recipient_id is None
    assert note.type == "document"


@pytest.mark.asyncio
async def test_upload_rejections(client, seed, monkeypatch):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    headers = seed.headers(owner, company)

    r = await upload(client, headers, name="tool.exe", ctype="application/x-msdownload")
    assert r.json()["detail"]["error"] == "FILE_TYPE_NOT_ALLOWED"

    r = await upload(client, headers, name="scan.png")
    assert r.json()["detail"]["error"] == "FILE_EXTENSION_NOT_ALLOWED"

    r = await upload(client, headers, content=b"")
    assert r.json()["detail"]["error"] == "EMPTY_FILE"

    r = await upload(client, headers, category="secret")
    assert r.json()["detail"]["error"] == "INVALID_CATEGORY"

    r = await upload(client, headers, title="ab")
    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "INVALID_TITLE"

    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 8)
    r = await upload(client, headers)
    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "FILE_TOO_LARGE"

    r = await upload(client, seed.headers(emp, company))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_upload_to_unknown_member_rejected(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    r = await upload(client, seed.headers(owner, company), user_id=uuid.uuid4())
    assert r.status_code == 422


# ---------------------------------------------------------
# Notifications
# ---------------------------------------------------------
async def add_notification(db, company, recipient=None, title="Hello", created_at=None) -> Notification:
    n = Notification(
        company_id=company.id,
        recipient_id=recipient.id if recipient else None,
        type="company",
        title=title,
        message=title,
        data={},
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(n)
    await db.commit()
    return n


@pytest.mark.asyncio
async def test_list_and_read_notifications(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    other, _ = await seed.member(company, "other@example.com")

    now = datetime.now(timezone.utc)
    personal = await add_notification(db, company, emp, "Personal", now - timedelta(minutes=2))
    broadcast = await add_notification(db, company, None, "Everyone", now - timedelta(minutes=1))
    await add_notification(db, company, other, "Not yours", now)

    headers = seed.headers(emp, company)
    r = await client.get("/api/v1/notifications", headers=headers)
    assert [n["title"] for n in r.json()] == ["Everyone", "Personal"]

    r = await client.get("/api/v1/notifications/unread-count", headers=headers)
    assert r.json() == {"unread": 2}

    r = await client.post("/api/v1/notifications/read-all", headers=headers)
    assert r.json() == {"status": "ok", "updated": 1}

    r = await client.get("/api/v1/notifications", params={"unread_only": True}, headers=headers)
    assert [n["id"] for n in r.json()] == [str(broadcast.id)]

    r = await client.post(f"/api/v1/notifications/{broadcast.id}/read", headers=headers)
    assert r.status_code == 200
    assert r.json()["read_at"] is not None

    r = await client.get("/api/v1/notifications/unread-count", headers=headers)
    assert r.json() == {"unread": 0}

    r = await client.post(f"/api/v1/notifications/{personal.id}/read", headers=headers)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_read_all_leaves_broadcasts_for_others(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    a, _ = await seed.member(company, "a@example.com")
    b, _ = await seed.member(company, "b@example.com")
    await add_notification(db, company, None, "Everyone")

    r = await client.post("/api/v1/notifications/read-all", headers=seed.headers(a, company))
    assert r.json() == {"status": "ok", "updated": 0}

    r = await client.get("/api/v1/notifications/unread-count", headers=seed.headers(b, company))
    assert r.json() == {"unread": 1}


@pytest.mark.asyncio
async def test_cannot_touch_someone_elses_notification(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    n = await add_notification(db, company, owner, "Owner only")

    r = await client.post(f"/api/v1/notifications/{n.id}/read", headers=seed.headers(emp, company))
    assert r.status_code == 404

    r = await client.delete(f"/api/v1/notifications/{n.id}", headers=seed.headers(emp, company))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_delete_archives_notification(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    n = await add_notification(db, company, emp, "Personal")
    headers = seed.headers(emp, company)

    r = await client.delete(f"/api/v1/notifications/{n.id}", headers=headers)
    assert r.status_code == 204

    r = await client.get("/api/v1/notifications", headers=headers)
    assert r.json() == []

    r = await client.get("/api/v1/notifications/deleted", headers=headers)
    rows = r.json()
    assert len(rows) == 1
    assert rows[0]["original_id"] == str(n.id)
    assert rows[0]["deleted_by"] == str(emp.id)


@pytest.mark.asyncio
async def test_only_admins_delete_broadcasts(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    n = await add_notification(db, company, None, "Everyone")

    r = await client.delete(f"/api/v1/notifications/{n.id}", headers=seed.headers(emp, company))
    assert r.status_code == 403

    r = await client.delete(f"/api/v1/notifications/{n.id}", headers=seed.headers(owner, company))
    assert r.status_code == 204


@pytest.mark.asyncio
async def test_cleanup_purges_old_deleted_notifications(seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    now = datetime.now(timezone.utc)

    for age in (settings.DELETED_NOTIFICATION_RETENTION_DAYS + 1, 1):
        db.add(
            DeletedNotification(
                original_id=uuid.uuid4(),
                company_id=company.id,
                recipient_id=owner.id,
                type="company",
                title="Old",
                message="Old",
                data={},
                created_at=now - timedelta(days=age),
                deleted_by=owner.id,
                deleted_at=now - timedelta(days=age),
            )
        )
    await db.commit()

    assert await cleanup_deleted_notifications(db, now=now) == 1
    remaining = (await db.execute(select(DeletedNotification))).scalars().all()
    assert len(remaining) == 1
