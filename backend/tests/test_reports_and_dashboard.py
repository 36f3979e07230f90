# tests/test_reports_and_dashboard.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from witar.models.time_entry import TimeEntry

DAY = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def add_session(db, company, user, start: datetime, hours: float) -> None:
    db.add(TimeEntry(company_id=company.id, user_id=user.id, entry_type="clock_in", entry_time=start))
    db.add(TimeEntry(company_id=company.id, user_id=user.id, entry_type="clock_out", entry_time=start + timedelta(hours=hours)))
    await db.commit()


# ---------------------------------------------------------
# Attendance
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_attendance_report(client, seed, db):
    owner = await seed.user("owner@example.com", full_name="Olga")
    company = await seed.company(owner)
    ana, _ = await seed.member(company, "ana@example.com", full_name="Ana")
    ben, _ = await seed.member(company, "ben@example.com", full_name="Ben")

    await add_session(db, company, ana, DAY, 8)
    await add_session(db, company, ana, DAY + timedelta(days=1), 6)
    await add_session(db, company, ben, DAY, 4)
    await add_session(db, company, ben, DAY + timedelta(days=5), 4)

    r = await client.get(
        "/api/v1/reports/attendance",
        params={"date_from": "2026-03-02", "date_to": "2026-03-03"},
        headers=seed.headers(owner, company),
    )
    assert r.status_code == 200
    body = r.json()
    rows = {row["email"]: row for row in body["employees"]}
    assert [row["name"] for row in body["employees"]] == ["Ana", "Ben", "Olga"]
    assert rows["ana@example.com"]["worked_hours"] == 14.0
    assert rows["ana@example.com"]["days_worked"] == 2
    assert rows["ben@example.com"]["worked_hours"] == 4.0
    assert rows["owner@example.com"]["sessions"] == 0
    assert body["total_hours"] == 18.0
    assert body["daily_totals"] == [
        {"date": "2026-03-02", "worked_hours": 12.0},
        {"date": "2026-03-03", "worked_hours": 6.0},
    ]

    r = await client.get(
        "/api/v1/reports/attendance",
        params={"date_from": "2026-03-02", "date_to": "2026-03-03", "user_id": str(ben.id)},
        headers=seed.headers(owner, company),
    )
    assert [row["email"] for row in r.json()["employees"]] == ["ben@example.com"]


@pytest.mark.asyncio
async def test_attendance_scoped_to_manager_team(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    manager, _ = await seed.member(company, "manager@example.com", role="MANAGER")
    team, _ = await seed.member(company, "team@example.com", supervisor_id=manager.id)
    outsider, _ = await seed.member(company, "outsider@example.com")
    await add_session(db, company, team, DAY, 3)
    await add_session(db, company, outsider, DAY, 5)

    params = {"date_from": "2026-03-02", "date_to": "2026-03-02"}
    r = await client.get("/api/v1/reports/attendance", params=params, headers=seed.headers(manager, company))
    body = r.json()
    assert [row["email"] for row in body["employees"]] == ["team@example.com"]
    assert body["total_hours"] == 3.0

    r = await client.get(
        "/api/v1/reports/attendance",
        params={**params, "user_id": str(outsider.id)},
        headers=seed.headers(manager, company),
    )
    assert r.status_code == 404

    r = await client.get("/api/v1/reports/attendance", params=params, headers=seed.headers(team, company))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_attendance_csv_export(client, seed, db):
    owner = await seed.user("owner@example.com", full_name="Olga")
    company = await seed.company(owner)
    await add_session(db, company, owner, DAY, 7.5)

    r = await client.get(
        "/api/v1/reports/attendance.csv",
        params={"date_from": "2026-03-02", "date_to": "2026-03-02"},
        headers=seed.headers(owner, company),
    )
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert 'filename="attendance-2026-03-02-2026-03-02.csv"' in r.headers["content-disposition"]
    lines = r.text.strip().splitlines()
    assert lines[0] == "user_id,name,email,days_worked,worked_hours,sessions"
    assert lines[1] == f"{owner.id},Olga,owner@example.com,1,7.5,1"


@pytest.mark.asyncio
async def test_attendance_rejects_reversed_range(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    r = await client.get(
        "/api/v1/reports/attendance",
        params={"date_from": "2026-03-05", "date_to": "2026-03-02"},
        headers=seed.headers(owner, company),
    )
    assert r.status_code == 422


# ---------------------------------------------------------
# Requests and company report
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_requests_report(client, seed):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    headers = seed.headers(emp, company)

    leave = {"request_type": "vacation", "start_date": "2026-07-01", "end_date": "2026-07-02", "reason": "x"}
    first = (await client.post("/api/v1/leave-requests", json=leave, headers=headers)).json()
    await client.post("/api/v1/leave-requests", json={**leave, "request_type": "sick_leave"}, headers=headers)
    await client.post(
        "/api/v1/time-entry-edit-requests",
        json={
            "request_type": "add_entry",
            "proposed_entry_time": "2026-03-02T08:00:00Z",
            "proposed_entry_type": "clock_in",
            "reason": "missing",
        },
        headers=headers,
    )
    await client.post(f"/api/v1/leave-requests/{first['id']}/approve", headers=seed.headers(owner, company))

    r = await client.get("/api/v1/reports/requests", headers=seed.headers(owner, company))
    assert r.status_code == 200
    body = r.json()
    assert body["leave_requests"]["total"] == 2
    assert body["leave_requests"]["by_status"] == {"approved": 1, "pending": 1}
    assert body["leave_requests"]["by_type"] == {"vacation": 1, "sick_leave": 1}
    assert body["leave_requests"]["average_approval_hours"] is not None
    assert body["time_entry_edit_requests"]["total"] == 1
    assert body["time_entry_edit_requests"]["average_approval_hours"] is None

    r = await client.get("/api/v1/reports/requests", params={"request_type": "sick_leave"}, headers=seed.headers(owner, company))
    assert r.json()["leave_requests"]["total"] == 1

    r = await client.get("/api/v1/reports/requests", params={"request_type": "holiday"}, headers=seed.headers(owner, company))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_company_report(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com", full_name="Eva")
    start = utcnow() - timedelta(hours=5)
    await add_session(db, company, emp, start, 2)

    r = await client.get("/api/v1/reports/company", params={"range": "week"}, headers=seed.headers(owner, company))
    assert r.status_code == 200
    body = r.json()
    assert body["range"] == "week"
    assert body["employees"]["total"] == 2
    assert body["employees"]["by_role"] == {"OWNER": 1, "EMPLOYEE": 1}
    assert body["employees"]["by_department"] == {"unassigned": 2}
    assert body["time_entries"]["total"] == 2
    assert body["time_entries"]["total_hours"] == 2.0
    assert body["productivity"]["top_performers"][0]["name"] == "Eva"

    r = await client.get("/api/v1/reports/company", params={"range": "decade"}, headers=seed.headers(owner, company))
    assert r.status_code == 422


# ---------------------------------------------------------
# Dashboard
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_owner_dashboard(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    a, _ = await seed.member(company, "a@example.com")
    b, _ = await seed.member(company, "b@example.com")
    now = utcnow()
    db.add(TimeEntry(company_id=company.id, user_id=a.id, entry_type="clock_in", entry_time=now - timedelta(hours=2)))
    db.add(TimeEntry(company_id=company.id, user_id=b.id, entry_type="clock_in", entry_time=now - timedelta(hours=2)))
    db.add(TimeEntry(company_id=company.id, user_id=b.id, entry_type="break_start", entry_time=now - timedelta(hours=1)))
    await db.commit()

    r = await client.get("/api/v1/dashboard", headers=seed.headers(owner, company))
    assert r.status_code == 200
    body = r.json()
    assert body["role"] == "OWNER"
    assert body["employee_count"] == 3
    assert body["currently_working"] == 1
    assert body["on_break"] == 1
    assert body["company_status"]["status"] == "trial"
    assert body["plan"]["current_employees"] == 3


@pytest.mark.asyncio
async def test_manager_dashboard_is_team_scoped(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    manager, _ = await seed.member(company, "manager@example.com", role="MANAGER")
    team, _ = await seed.member(company, "team@example.com", supervisor_id=manager.id)
    outsider, _ = await seed.member(company, "outsider@example.com")
    now = utcnow()
    db.add(TimeEntry(company_id=company.id, user_id=outsider.id, entry_type="clock_in", entry_time=now - timedelta(hours=1)))
    await db.commit()

    r = await client.get("/api/v1/dashboard", headers=seed.headers(manager, company))
    body = r.json()
    assert body["employee_count"] == 1
    assert body["currently_working"] == 0
    assert "plan" not in body


@pytest.mark.asyncio
async def test_employee_dashboard(client, seed, db):
    owner = await seed.user("owner@example.com")
    company = await seed.company(owner)
    emp, _ = await seed.member(company, "emp@example.com")
    headers = seed.headers(emp, company)

    await client.post("/api/v1/time-clock/punch", json={"entry_type": "clock_in"}, headers=headers)
    await client.post(
        "/api/v1/leave-requests",
        json={"request_type": "vacation", "start_date": "2026-07-01", "end_date": "2026-07-02", "reason": "x"},
        headers=headers,
    )

    r = await client.get("/api/v1/dashboard", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["role"] == "EMPLOYEE"
    assert body["session"]["state"] == "working"
    assert body["pending_leave_requests"] == 1
    assert body["documents"] == 0
    assert "employee_count" not in body
