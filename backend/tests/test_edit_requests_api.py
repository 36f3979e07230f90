# tests/test_edit_requests_api.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from witar.models.notification import Notification
from witar.models.time_entry import TimeEntry

BASE = "/api/v1/time-entry-edit-requests"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def add_entry(db, company, user, entry_type: str, when: datetime) -> TimeEntry:
    e = TimeEntry(company_id=company.id, user_id=user.id, entry_type=entry_type, entry_time=when)
    db.add(e)
    await db.commit()
    return e


async def entry_row(db, entry_id):
    return (await db.execute(select(TimeEntry).where(TimeEntry.id == entry_id))).scalar_one_or_none()


@pytest.mark.asyncio
async def test_edit_time_request_approved_updates_entry(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com", full_name="Eva")
    entry = await add_entry(db, company, emp, "clock_in", datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc))

    r = await client.post(
        BASE,
        json={
            "request_type": "edit_time",
            "time_entry_id": str(entry.id),
            "proposed_entry_time": "2026-03-02T08:00:00Z",
            "reason": "Forgot to punch on arrival",
        },
        headers=seed.headers(emp, company),
    )
    assert r.status_code == 201
    req = r.json()
    assert req["status"] == "pending"
    assert req["current_entry_type"] == "clock_in"

    notes = (
        await db.execute(select(Notification).where(Notification.type == "time_edit_request"))
    ).scalars().all()
    assert [n.recipient_id for n in notes] == [owner.id]
    assert notes[0].message == "Eva requested a time change"

    r = await client.post(f"{BASE}/{req['id']}/approve", json={"notes": "ok"}, headers=seed.headers(owner, company))
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "approved"
    assert body["approval_notes"] == "ok"
    assert body["approved_by"] == str(owner.id)
    assert body["requester_email"] == "emp@example.com"
    assert body["requester_name"] == "Eva"
    assert body["approver_email"] == "owner@example.com"

    entry_id = entry.id
    db.expire_all()
    row = await entry_row(db, entry_id)
    assert row.entry_time == datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
    assert row.entry_type == "clock_in"

    r = await client.post(f"{BASE}/{req['id']}/approve", headers=seed.headers(owner, company))
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "REQUEST_ALREADY_DECIDED"


@pytest.mark.asyncio
async def test_add_entry_request_creates_entry(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")

    r = await client.post(
        BASE,
        json={
            "request_type": "add_entry",
            "proposed_entry_time": "2026-03-02T17:00:00Z",
            "proposed_entry_type": "clock_out",
            "reason": "Left without punching",
        },
        headers=seed.headers(emp, company),
    )
    assert r.status_code == 201

    r = await client.post(f"{BASE}/{r.json()['id']}/approve", headers=seed.headers(owner, company))
    assert r.status_code == 200
    new_id = r.json()["time_entry_id"]
    assert new_id is not None

    rows = (await db.execute(select(TimeEntry).where(TimeEntry.user_id == emp.id))).scalars().all()
    assert [(e.entry_type, e.entry_time.hour) for e in rows] == [("clock_out", 17)]


@pytest.mark.asyncio
async def test_delete_entry_request(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    entry = await add_entry(db, company, emp, "break_start", utcnow() - timedelta(hours=1))

    r = await client.post(
        BASE,
        json={"request_type": "delete_entry", "time_entry_id": str(entry.id), "reason": "Punched by mistake"},
        headers=seed.headers(emp, company),
    )
    req_id = r.json()["id"]

    r = await client.post(
        BASE,
        json={"request_type": "delete_entry", "time_entry_id": str(entry.id), "reason": "again"},
        headers=seed.headers(emp, company),
    )
    assert r.status_code == 409

    r = await client.post(f"{BASE}/{req_id}/approve", headers=seed.headers(owner, company))
    assert r.status_code == 200
    assert r.json()["time_entry_id"] is None
    assert await entry_row(db, entry.id) is None


@pytest.mark.asyncio
async def test_approval_fails_when_entry_is_gone(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    entry = await add_entry(db, company, emp, "clock_in", utcnow() - timedelta(hours=1))

    r = await client.post(
        BASE,
        json={"request_type": "edit_type", "time_entry_id": str(entry.id), "proposed_entry_type": "clock_out", "reason": "x"},
        headers=seed.headers(emp, company),
    )
    req_id = r.json()["id"]

    await db.delete(entry)
    await db.commit()

    r = await client.post(f"{BASE}/{req_id}/approve", headers=seed.headers(owner, company))
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "TIME_ENTRY_NOT_FOUND"

    r = await client.get(f"{BASE}/me", headers=seed.headers(emp, company))
    assert r.json()[0]["status"] == "pending"


@pytest.mark.asyncio
async def test_invalid_proposals_are_rejected(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    other, _ = await seed.member(company, "other@example.com")
    foreign = await add_entry(db, company, other, "clock_in", utcnow())
    headers = seed.headers(emp, company)

    r = await client.post(BASE, json={"request_type": "edit_time", "reason": "x"}, headers=headers)
    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "INVALID_EDIT_REQUEST"

    r = await client.post(
        BASE,
        json={"request_type": "delete_entry", "time_entry_id": str(foreign.id), "reason": "not mine"},
        headers=headers,
    )
    assert r.status_code == 404

    r = await client.post(
        BASE,
        json={"request_type": "delete_entry", "time_entry_id": str(foreign.id), "reason": "   "},
        headers=headers,
    )
    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "REASON_REQUIRED"


@pytest.mark.asyncio
async def test_reject_requires_notes_and_keeps_entry(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    entry = await add_entry(db, company, emp, "clock_in", datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))

    r = await client.post(
        BASE,
        json={"request_type": "delete_entry", "time_entry_id": str(entry.id), "reason": "x"},
        headers=seed.headers(emp, company),
    )
    req_id = r.json()["id"]

    r = await client.post(f"{BASE}/{req_id}/reject", json={"notes": "  "}, headers=seed.headers(owner, company))
    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "NOTES_REQUIRED"

    r = await client.post(f"{BASE}/{req_id}/reject", json={"notes": "Entry is correct"}, headers=seed.headers(owner, company))
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"
    assert r.json()["requester_email"] == "emp@example.com"
    assert await entry_row(db, entry.id) is not None

    note = (
        await db.execute(select(Notification).where(Notification.recipient_id == emp.id, Notification.type == "request_rejected"))
    ).scalar_one()
    assert note.message.endswith("Entry is correct")


@pytest.mark.asyncio
async def test_manager_decides_only_for_team_employees(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    manager, _ = await seed.member(company, "manager@example.com", role="MANAGER")
    team, _ = await seed.member(company, "team@example.com", supervisor_id=manager.id)
    outsider, _ = await seed.member(company, "outsider@example.com")

    ids = {}
    for user in (team, outsider, manager):
        r = await client.post(
            BASE,
            json={
                "request_type": "add_entry",
                "proposed_entry_time": "2026-03-02T08:00:00Z",
                "proposed_entry_type": "clock_in",
                "reason": "missing",
            },
            headers=seed.headers(user, company),
        )
        assert r.status_code == 201
        ids[user.email] = r.json()["id"]

    r = await client.get(BASE, headers=seed.headers(manager, company))
    assert [row["requester_email"] for row in r.json()] == ["team@example.com"]

    r = await client.get(f"{BASE}/stats", headers=seed.headers(manager, company))
    assert r.json() == {"pending": 1, "approved": 0, "rejected": 0, "total": 1}

    r = await client.post(f"{BASE}/{ids['outsider@example.com']}/approve", headers=seed.headers(manager, company))
    assert r.status_code == 403

    r = await client.post(f"{BASE}/{ids['manager@example.com']}/approve", headers=seed.headers(manager, company))
    assert r.status_code == 403

    r = await client.post(f"{BASE}/{ids['team@example.com']}/approve", headers=seed.headers(manager, company))
    assert r.status_code == 200

    # a manager's own request goes to OWNER/ADMIN
    r = await client.post(f"{BASE}/{ids['manager@example.com']}/approve", headers=seed.headers(owner, company))
    assert r.status_code == 200

    r = await client.get(BASE, params={"status": "all"}, headers=seed.headers(owner, company))
    assert len(r.json()) == 3


@pytest.mark.asyncio
async def test_employee_cannot_list_or_decide(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")

    r = await client.get(BASE, headers=seed.headers(emp, company))
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "rbac_forbidden"


@pytest.mark.asyncio
async def test_cancel_pending_request(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    headers = seed.headers(emp, company)

    payload = {
        "request_type": "add_entry",
        "proposed_entry_time": "2026-03-02T08:00:00Z",
        "proposed_entry_type": "clock_in",
        "reason": "missing",
    }
    first = (await client.post(BASE, json=payload, headers=headers)).json()["id"]
    second = (await client.post(BASE, json=payload, headers=headers)).json()["id"]

    r = await client.delete(f"{BASE}/me/{first}", headers=headers)
    assert r.status_code == 204

    await client.post(f"{BASE}/{second}/reject", json={"notes": "no"}, headers=seed.headers(owner, company))
    r = await client.delete(f"{BASE}/me/{second}", headers=headers)
    assert r.status_code == 409

    r = await client.get(f"{BASE}/me", headers=headers)
    rows = r.json()
    assert [row["id"] for row in rows] == [second]
    assert rows[0]["approver_email"] == "owner@example.com"
