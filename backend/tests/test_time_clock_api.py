# tests/test_time_clock_api.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from witar.models.notification import Notification
from witar.models.time_entry import TimeEntry


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def add_entry(db, company, user, entry_type: str, when: datetime) -> TimeEntry:
    e = TimeEntry(company_id=company.id, user_id=user.id, entry_type=entry_type, entry_time=when)
    db.add(e)
    await db.commit()
    return e


async def punch(client, headers, entry_type: str, **extra):
    return await client.post("/api/v1/time-clock/punch", json={"entry_type": entry_type, **extra}, headers=headers)


@pytest.mark.asyncio
async def test_full_day_cycle(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    headers = seed.headers(emp, company)

    r = await client.get("/api/v1/time-clock/status", headers=headers)
    assert r.json()["state"] == "off"
    assert r.json()["allowed_entry_types"] == ["clock_in"]

    r = await punch(client, headers, "clock_in")
    assert r.status_code == 201
    body = r.json()
    assert body["entry"]["entry_type"] == "clock_in"
    assert body["session"]["state"] == "working"

    r = await punch(client, headers, "break_start")
    assert r.json()["session"]["state"] == "on_break"

    r = await punch(client, headers, "break_end")
    assert r.json()["session"]["state"] == "working"

    r = await punch(client, headers, "clock_out")
    assert r.status_code == 201
    assert r.json()["session"]["state"] == "off"

    r = await client.get("/api/v1/time-entries/me", headers=headers)
    body = r.json()
    assert [e["entry_type"] for e in body["entries"]] == ["clock_in", "break_start", "break_end", "clock_out"]
    assert body["worked"] == "00:00:00"


@pytest.mark.asyncio
async def test_invalid_transition_is_conflict(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    headers = seed.headers(emp, company)

    r = await punch(client, headers, "clock_out")
    assert r.status_code == 409
    detail = r.json()["detail"]
    assert detail["error"] == "INVALID_TRANSITION"
    assert detail["state"] == "off"
    assert detail["allowed_entry_types"] == ["clock_in"]

    await punch(client, headers, "clock_in")
    r = await punch(client, headers, "clock_in")
    assert r.status_code == 409
    assert set(r.json()["detail"]["allowed_entry_types"]) == {"break_start", "clock_out"}


@pytest.mark.asyncio
async def test_unknown_entry_type_is_validation_error(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    r = await punch(client, seed.headers(owner, company), "lunch")
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_location_required_by_company(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner, require_location=True)
    emp, _ = await seed.member(company, "emp@example.com")
    headers = seed.headers(emp, company)

    r = await punch(client, headers, "clock_in")
    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "LOCATION_REQUIRED"

    r = await punch(client, headers, "clock_in", location_lat=40.4168, location_lng=-3.7038)
    assert r.status_code == 201
    assert r.json()["entry"]["location_lat"] == pytest.approx(40.4168)


@pytest.mark.asyncio
async def test_member_override_disables_location(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner, require_location=True)
    emp, _ = await seed.member(company, "emp@example.com", require_location=False)

    r = await punch(client, seed.headers(emp, company), "clock_in")
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_stale_session_does_not_block_new_clock_in(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    await add_entry(db, company, emp, "clock_in", utcnow() - timedelta(hours=30))

    headers = seed.headers(emp, company)
    r = await client.get("/api/v1/time-clock/status", headers=headers)
    assert r.json()["state"] == "off"

    r = await punch(client, headers, "clock_in")
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_punch_notifies_staff_but_not_actor(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    admin, _ = await seed.member(company, "admin@example.com", role="ADMIN")
    emp, _ = await seed.member(company, "emp@example.com", full_name="Eva")

    await punch(client, seed.headers(emp, company), "clock_in")

    rows = (
        await db.execute(select(Notification).where(Notification.company_id == company.id, Notification.type == "time_clock"))
    ).scalars().all()
    assert {n.recipient_id for n in rows} == {owner.id, admin.id}
    assert all(n.message == "Eva clocked in" for n in rows)


@pytest.mark.asyncio
async def test_time_clock_notifications_can_be_switched_off(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner, notify_time_clock=False)
    emp, _ = await seed.member(company, "emp@example.com")

    await punch(client, seed.headers(emp, company), "clock_in")

    rows = (await db.execute(select(Notification).where(Notification.company_id == company.id))).scalars().all()
    assert rows == []


@pytest.mark.asyncio
async def test_my_entries_date_filter_and_worked_time(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")

    day = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
    await add_entry(db, company, emp, "clock_in", day)
    await add_entry(db, company, emp, "clock_out", day + timedelta(hours=8, minutes=30))
    await add_entry(db, company, emp, "clock_in", day + timedelta(days=1))
    await add_entry(db, company, emp, "clock_out", day + timedelta(days=1, hours=2))

    r = await client.get(
        "/api/v1/time-entries/me",
        params={"date_from": "2026-03-02", "date_to": "2026-03-02"},
        headers=seed.headers(emp, company),
    )
    body = r.json()
    assert len(body["entries"]) == 2
    assert body["worked_seconds"] == int(8.5 * 3600)
    assert body["worked"] == "08:30:00"

    r = await client.get(
        "/api/v1/time-entries/me",
        params={"date_from": "2026-03-03", "date_to": "2026-03-02"},
        headers=seed.headers(emp, company),
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_company_entries_visibility(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    manager, _ = await seed.member(company, "manager@example.com", role="MANAGER")
    mine, _ = await seed.member(company, "mine@example.com", supervisor_id=manager.id, full_name="Mía")
    other, _ = await seed.member(company, "other@example.com")

    now = utcnow()
    await add_entry(db, company, mine, "clock_in", now - timedelta(hours=2))
    await add_entry(db, company, other, "clock_in", now - timedelta(hours=1))

    r = await client.get("/api/v1/time-entries", headers=seed.headers(owner, company))
    assert r.status_code == 200
    assert len(r.json()) == 2

    r = await client.get("/api/v1/time-entries", headers=seed.headers(manager, company))
    rows = r.json()
    assert [row["user_email"] for row in rows] == ["mine@example.com"]
    assert rows[0]["user_name"] == "Mía"

    r = await client.get("/api/v1/time-entries", headers=seed.headers(other, company))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_active_members(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    a, _ = await seed.member(company, "a@example.com")
    b, _ = await seed.member(company, "b@example.com")
    c, _ = await seed.member(company, "c@example.com")

    now = utcnow()
    await add_entry(db, company, a, "clock_in", now - timedelta(hours=3))
    await add_entry(db, company, b, "clock_in", now - timedelta(hours=2))
    await add_entry(db, company, b, "break_start", now - timedelta(hours=1))
    await add_entry(db, company, c, "clock_in", now - timedelta(hours=4))
    await add_entry(db, company, c, "clock_out", now - timedelta(hours=1))

    r = await client.get("/api/v1/time-entries/active", headers=seed.headers(owner, company))
    assert r.status_code == 200
    rows = r.json()
    assert [row["email"] for row in rows] == ["a@example.com", "b@example.com"]
    assert rows[1]["session"]["state"] == "on_break"

    r = await client.get("/api/v1/time-entries/active", headers=seed.headers(a, company))
    assert r.status_code == 403
