"""Leave router — chargeable days, balances, requests, reports, administration.

All endpoints require authentication. The acting context (role plus the
``X-Acting-Mode`` header) is resolved once per request and passed down.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hris.auth.dependencies import get_acting_context, require_admin
from hris.common.constants import LeaveStatus, PartialDayType
from hris.common.exceptions import LeaveErrorCode, LeaveRuleViolation
from hris.common.rate_limit import BATCH_RECALCULATION_LIMIT, limiter
from hris.database import get_db
from hris.leave import compliance, reports
from hris.leave.balances import BalanceService
from hris.leave.calculator import calculate_chargeable_leave, load_employee
from hris.leave.permissions import (
    ActingContext,
    can_view_employee_leave,
    is_acting_as_admin,
)
from hris.leave.policies import PolicyService
from hris.leave.schemas import (
    BalanceAdjustRequest,
    BatchRecalculationOut,
    BatchRecalculationRequest,
    ChargeableLeaveOut,
    ComplianceIssueOut,
    ComplianceReportOut,
    EmployeeBalancesOut,
    EmployeeBrief,
    LeaveApproveRequest,
    LeaveCalendarEntry,
    LeaveCancelRequest,
    LeaveContextOut,
    LeaveDeclineRequest,
    LeavePolicyOut,
    LeaveRequestCreate,
    LeaveRequestOnBehalfCreate,
    LeaveRequestOut,
    LeaveRequestOutcomeOut,
    LeaveSummaryOut,
    PolicyContextOut,
)
from hris.leave.service import LeaveRequestOutcome, LeaveService

router = APIRouter(prefix="", tags=["leave"])


async def _ensure_can_view(
    db: AsyncSession,
    ctx: ActingContext,
    employee_id: uuid.UUID,
) -> None:
    target = await load_employee(db, employee_id)
    if not can_view_employee_leave(ctx, target):
        raise LeaveRuleViolation(LeaveErrorCode.PERMISSION_DENIED)


async def _outcome_response(
    db: AsyncSession,
    outcome: LeaveRequestOutcome,
) -> LeaveRequestOutcomeOut:
    leave_req = await LeaveService.get_leave_request(db, outcome.request.id)
    return LeaveRequestOutcomeOut(
        request=LeaveRequestOut.model_validate(leave_req),
        chargeable=ChargeableLeaveOut.model_validate(outcome.chargeable),
        auto_approved=outcome.auto_approved,
        balance_warning=outcome.balance_warning,
    )


# ── GET /chargeable-days ────────────────────────────────────────────

@router.get("/chargeable-days", response_model=ChargeableLeaveOut)
async def preview_chargeable_days(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee_id: Optional[uuid.UUID] = Query(None),
    partial_day_type: PartialDayType = Query(PartialDayType.full),
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    """Preview how many days a request would consume. Nothing is persisted."""
    target_id = employee_id or ctx.employee_id
    if target_id != ctx.employee_id:
        await _ensure_can_view(db, ctx, target_id)
    chargeable = await calculate_chargeable_leave(
        db, start_date, end_date, target_id, partial_day_type,
    )
    return ChargeableLeaveOut.model_validate(chargeable)


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances/me", response_model=EmployeeBalancesOut)
async def my_balances(
    as_of: Optional[date] = Query(None),
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    balances = await BalanceService.get_leave_balances_for_employee(
        db, ctx.employee_id, as_of,
    )
    return EmployeeBalancesOut.model_validate(balances)


@router.get("/balances/{employee_id}", response_model=EmployeeBalancesOut)
async def employee_balances(
    employee_id: uuid.UUID,
    as_of: Optional[date] = Query(None),
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    """Balances for a given employee (self, direct manager, or admin)."""
    await _ensure_can_view(db, ctx, employee_id)
    balances = await BalanceService.get_leave_balances_for_employee(db, employee_id, as_of)
    return EmployeeBalancesOut.model_validate(balances)


# ── POST /balances/recalculate (admin) ──────────────────────────────

@router.post("/balances/recalculate", response_model=BatchRecalculationOut)
@limiter.limit(BATCH_RECALCULATION_LIMIT)
async def recalculate_balances(
    request: Request,
    body: BatchRecalculationRequest,
    ctx: ActingContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
):
    """Recompute and store balance snapshots for every active employee in scope."""
    result = await BalanceService.recalculate_all_balances_for_entity(
        db, body.entity_id, as_of=body.as_of,
    )
    return BatchRecalculationOut.model_validate(result)


# ── POST /balances/{employee_id}/adjust (admin) ─────────────────────

@router.post("/balances/{employee_id}/adjust", response_model=EmployeeBalancesOut)
async def adjust_balance(
    employee_id: uuid.UUID,
    body: BalanceAdjustRequest,
    ctx: ActingContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
):
    balances = await BalanceService.adjust_leave_balance(
        db,
        employee_id,
        body.category,
        body.hours,
        body.reason,
        actor_id=ctx.employee_id,
    )
    return EmployeeBalancesOut.model_validate(balances)


# ── GET /context/{employee_id} ──────────────────────────────────────

@router.get("/context/{employee_id}", response_model=LeaveContextOut)
async def leave_context(
    employee_id: uuid.UUID,
    as_of: Optional[date] = Query(None),
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    """Resolved policy per leave category, with long-service eligibility."""
    await _ensure_can_view(db, ctx, employee_id)
    context = await PolicyService.get_leave_context_for_employee(db, employee_id, as_of)
    return LeaveContextOut(
        employee_id=employee_id,
        as_of=context.as_of,
        policies={
            category: PolicyContextOut.model_validate(policy_ctx) if policy_ctx else None
            for category, policy_ctx in context.policies.items()
        },
        unresolved=context.unresolved,
    )


# ── Requests ────────────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOutcomeOut, status_code=201)
async def create_leave_request(
    body: LeaveRequestCreate,
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    """Submit leave. Pending when the employee has a manager, else auto-approved."""
    outcome = await LeaveService.create_leave_request(
        db,
        employee_id=body.employee_id or ctx.employee_id,
        leave_type_id=body.leave_type_id,
        start_date=body.start_date,
        end_date=body.end_date,
        actor=ctx,
        reason=body.reason,
        partial_day_type=body.partial_day_type,
    )
    return await _outcome_response(db, outcome)


@router.post("/requests/on-behalf", response_model=LeaveRequestOutcomeOut, status_code=201)
async def create_leave_on_behalf(
    body: LeaveRequestOnBehalfCreate,
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    """Record approved leave for a direct report (managers) or anyone (admins)."""
    outcome = await LeaveService.create_leave_as_manager(
        db,
        employee_id=body.employee_id,
        leave_type_id=body.leave_type_id,
        start_date=body.start_date,
        end_date=body.end_date,
        actor=ctx,
        reason=body.reason,
        partial_day_type=body.partial_day_type,
    )
    return await _outcome_response(db, outcome)


@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: LeaveApproveRequest,
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.approve_leave_request(db, request_id, ctx, body.comment)


@router.put("/requests/{request_id}/decline", response_model=LeaveRequestOut)
async def decline_leave(
    request_id: uuid.UUID,
    body: LeaveDeclineRequest,
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.decline_leave_request(db, request_id, ctx, body.reason or "")


@router.put("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    body: LeaveCancelRequest,
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a pending request, or recall approved leave that has not started."""
    return await LeaveService.cancel_leave_request(db, request_id, ctx, body.reason)


# ── GET /history/{employee_id} ──────────────────────────────────────

@router.get("/history/{employee_id}", response_model=list[LeaveRequestOut])
async def leave_history(
    employee_id: uuid.UUID,
    status: Optional[LeaveStatus] = Query(None),
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    await _ensure_can_view(db, ctx, employee_id)
    return await reports.get_leave_history_for_employee(db, employee_id, status)


# ── GET /calendar ───────────────────────────────────────────────────

@router.get("/calendar", response_model=list[LeaveCalendarEntry])
async def team_calendar(
    start_date: date = Query(...),
    end_date: date = Query(...),
    entity_id: Optional[uuid.UUID] = Query(None),
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    """Team leave for the range. Admins may view a whole entity."""
    if is_acting_as_admin(ctx):
        requests = await reports.get_team_leave_for_range(
            db, start_date, end_date, entity_id=entity_id,
        )
    else:
        requests = await reports.get_team_leave_for_range(
            db, start_date, end_date, manager_id=ctx.employee_id,
        )
    return [
        LeaveCalendarEntry(
            request_id=r.id,
            employee=EmployeeBrief.model_validate(r.employee),
            leave_type_name=r.leave_type.name if r.leave_type else None,
            start_date=r.start_date,
            end_date=r.end_date,
            status=r.status,
            is_half_day=r.is_half_day,
        )
        for r in requests
    ]


# ── Reports (admin) ─────────────────────────────────────────────────

@router.get("/reports/summary", response_model=LeaveSummaryOut)
async def leave_summary(
    start_date: date = Query(...),
    end_date: date = Query(...),
    entity_id: Optional[uuid.UUID] = Query(None),
    ctx: ActingContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
):
    summary = await reports.get_leave_summary(db, start_date, end_date, entity_id)
    return LeaveSummaryOut.model_validate(summary)


@router.get("/reports/compliance", response_model=ComplianceReportOut)
async def compliance_report(
    ctx: ActingContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
):
    """NES compliance issues across all active Australian policies."""
    issues = await compliance.check_all_policies(db)
    summary = compliance.get_compliance_summary(issues)
    return ComplianceReportOut(
        total=summary.total,
        errors=summary.errors,
        warnings=summary.warnings,
        info=summary.info,
        is_compliant=summary.is_compliant,
        issues=[ComplianceIssueOut.model_validate(i) for i in issues],
    )


# ── Policies (admin) ────────────────────────────────────────────────

@router.post("/policies/seed-au")
async def seed_au_policies(
    ctx: ActingContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
):
    """Create any missing NES system policies."""
    return await PolicyService.ensure_default_australian_leave_policies(db)


@router.put("/policies/{policy_id}/default", response_model=LeavePolicyOut)
async def make_default_policy(
    policy_id: uuid.UUID,
    ctx: ActingContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
):
    return await PolicyService.set_default_policy(db, policy_id)


@router.delete("/policies/{policy_id}", status_code=204)
async def delete_policy(
    policy_id: uuid.UUID,
    ctx: ActingContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
):
    await PolicyService.delete_policy(db, policy_id, actor_id=ctx.employee_id)
