"""HTTP API tests — auth, acting mode, leave and holiday endpoints."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from hris.common.constants import ActingMode, LeaveStatus, UserRole
from hris.common.exceptions import LeaveErrorCode
from tests.conftest import (
    _seed_employee,
    _seed_holiday,
    _seed_leave_type,
    _seed_nes_annual,
    auth_headers_for,
    create_access_token,
)

LEAVE = "/api/v1/leave"
HOLIDAYS = "/api/v1/holidays"


# ── System / auth ───────────────────────────────────────────────────

async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["cache_version"] == 0


async def test_missing_token_rejected(client):
    resp = await client.get(f"{LEAVE}/balances/me")
    assert resp.status_code == 401


async def test_expired_token_rejected(client, db, test_employee):
    await db.commit()
    token = create_access_token(test_employee.id, expired=True)
    resp = await client.get(
        f"{LEAVE}/balances/me", headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token has expired."


async def test_unknown_employee_token_rejected(client):
    resp = await client.get(f"{LEAVE}/balances/me", headers=auth_headers_for(uuid.uuid4()))
    assert resp.status_code == 401


async def test_invalid_acting_mode(client, db, test_employee):
    await db.commit()
    headers = auth_headers_for(test_employee.id)
    headers["X-Acting-Mode"] = "superuser"
    resp = await client.get(f"{LEAVE}/balances/me", headers=headers)
    assert resp.status_code == 400


# ── Chargeable days and balances ────────────────────────────────────

async def test_chargeable_days_preview(client, db, test_employee, auth_headers):
    await _seed_holiday(db, date(2026, 1, 26), "Australia Day")
    await db.commit()

    resp = await client.get(
        f"{LEAVE}/chargeable-days",
        params={"start_date": "2026-01-24", "end_date": "2026-01-30"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_days"] == 7
    assert data["weekend_count"] == 2
    assert data["holiday_count"] == 1
    assert Decimal(str(data["chargeable_days"])) == Decimal("4")
    assert data["holidays"][0]["name"] == "Australia Day"


async def test_chargeable_days_invalid_range(client, db, test_employee, auth_headers):
    await db.commit()
    resp = await client.get(
        f"{LEAVE}/chargeable-days",
        params={"start_date": "2026-01-30", "end_date": "2026-01-26"},
        headers=auth_headers,
    )
    assert resp.status_code == 422


async def test_my_balances(client, db, test_employee, auth_headers):
    await _seed_nes_annual(db)
    await db.commit()

    resp = await client.get(
        f"{LEAVE}/balances/me", params={"as_of": "2026-01-06"}, headers=auth_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["employee_id"] == str(test_employee.id)
    # Six full years of 152h
    assert data["annual"]["available"] > 900
    assert data["personal"] is None
    assert "personal" in data["notices"]


async def test_colleague_cannot_view_balances(client, db, test_employee):
    colleague = await _seed_employee(db, first_name="Casey")
    await db.commit()

    resp = await client.get(
        f"{LEAVE}/balances/{test_employee.id}", headers=auth_headers_for(colleague.id),
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == LeaveErrorCode.PERMISSION_DENIED.value


# ── Requests ────────────────────────────────────────────────────────

async def test_create_request_and_overlap(client, db, test_employee, auth_headers):
    await _seed_nes_annual(db)
    lt = await _seed_leave_type(db)
    await db.commit()

    body = {
        "leave_type_id": str(lt.id),
        "start_date": "2027-03-01",
        "end_date": "2027-03-03",
        "reason": "Family visit",
    }
    resp = await client.post(f"{LEAVE}/requests", json=body, headers=auth_headers)
    assert resp.status_code == 201
    data = resp.json()
    assert data["auto_approved"] is True
    assert data["request"]["status"] == LeaveStatus.approved.value
    assert Decimal(str(data["chargeable"]["chargeable_days"])) == Decimal("3")

    body["start_date"] = "2027-03-03"
    body["end_date"] = "2027-03-05"
    resp = await client.post(f"{LEAVE}/requests", json=body, headers=auth_headers)
    assert resp.status_code == 409
    problem = resp.json()
    assert problem["code"] == LeaveErrorCode.OVERLAPPING_LEAVE.value
    assert problem["status"] == 409


async def test_manager_approves_via_api(client, db):
    await _seed_nes_annual(db)
    lt = await _seed_leave_type(db)
    manager = await _seed_employee(db, first_name="Morgan", is_manager=True)
    report = await _seed_employee(db, manager_id=manager.id)
    await db.commit()

    resp = await client.post(
        f"{LEAVE}/requests",
        json={
            "leave_type_id": str(lt.id),
            "start_date": "2027-05-03",
            "end_date": "2027-05-03",
        },
        headers=auth_headers_for(report.id),
    )
    assert resp.status_code == 201
    request_id = resp.json()["request"]["id"]
    assert resp.json()["request"]["status"] == LeaveStatus.pending.value

    resp = await client.put(
        f"{LEAVE}/requests/{request_id}/decline",
        json={},
        headers=auth_headers_for(manager.id, UserRole.manager),
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == LeaveErrorCode.DECLINE_REASON_REQUIRED.value

    resp = await client.put(
        f"{LEAVE}/requests/{request_id}/approve",
        json={"comment": "Approved"},
        headers=auth_headers_for(manager.id, UserRole.manager),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == LeaveStatus.approved.value

    resp = await client.get(
        f"{LEAVE}/history/{report.id}", headers=auth_headers_for(manager.id, UserRole.manager),
    )
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()] == [request_id]


# ── Admin-only endpoints ────────────────────────────────────────────

async def test_compliance_report_requires_admin(client, db, test_employee, auth_headers):
    await _seed_nes_annual(db)
    await db.commit()

    resp = await client.get(f"{LEAVE}/reports/compliance", headers=auth_headers)
    assert resp.status_code == 403

    admin_headers = auth_headers_for(test_employee.id, UserRole.admin)
    resp = await client.get(f"{LEAVE}/reports/compliance", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["errors"] == 0
    assert resp.json()["is_compliant"] is True


async def test_admin_in_staff_mode_is_not_admin(client, db, test_employee):
    await db.commit()
    headers = auth_headers_for(test_employee.id, UserRole.admin, ActingMode.staff)
    resp = await client.post(f"{LEAVE}/policies/seed-au", headers=headers)
    assert resp.status_code == 403


async def test_seed_au_policies(client, db, test_employee):
    await db.commit()
    headers = auth_headers_for(test_employee.id, UserRole.admin)
    resp = await client.post(f"{LEAVE}/policies/seed-au", headers=headers)
    assert resp.status_code == 200
    assert len(resp.json()["created"]) == 4


# ── Holidays ────────────────────────────────────────────────────────

async def test_list_holidays(client, db, test_employee, auth_headers):
    await _seed_holiday(db, date(2026, 1, 26), "Australia Day")
    await _seed_holiday(db, date(2026, 10, 5), "Labour Day", state_region="NSW")
    await _seed_holiday(db, date(2026, 3, 9), "Labour Day", state_region="VIC")
    await db.commit()

    resp = await client.get(
        HOLIDAYS, params={"year": 2026, "state_region": "NSW"}, headers=auth_headers,
    )
    assert resp.status_code == 200
    assert [h["date"] for h in resp.json()] == ["2026-01-26", "2026-10-05"]


async def test_copy_holidays_bumps_cache(client, db, test_employee):
    await _seed_holiday(db, date(2026, 12, 25), "Christmas Day")
    await db.commit()
    headers = auth_headers_for(test_employee.id, UserRole.admin)

    resp = await client.post(
        f"{HOLIDAYS}/copy", json={"source_year": 2026, "target_year": 2027}, headers=headers,
    )
    assert resp.status_code == 201
    assert [h["date"] for h in resp.json()] == ["2027-12-25"]

    health = (await client.get("/api/v1/health")).json()
    assert health["cache_version"] >= 1
