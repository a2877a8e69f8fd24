"""Public holiday router — calendar listing and year-to-year copy."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hris.auth.dependencies import get_acting_context, require_admin
from hris.database import get_db
from hris.holidays.schemas import HolidayCopyRequest, PublicHolidayOut
from hris.holidays.service import HolidayService
from hris.leave.cache import leave_engine_cache
from hris.leave.permissions import ActingContext

router = APIRouter(prefix="", tags=["holidays"])


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=list[PublicHolidayOut])
async def list_holidays(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    entity_id: Optional[uuid.UUID] = Query(None),
    state_region: Optional[str] = Query(None, max_length=10),
    country: Optional[str] = Query(None, min_length=2, max_length=2),
    ctx: ActingContext = Depends(get_acting_context),
    db: AsyncSession = Depends(get_db),
):
    """Holidays for an entity and region, one per date."""
    return await HolidayService.get_public_holidays_for_entity(
        db,
        entity_id,
        state_region=state_region,
        country=country,
        year=year,
    )


# ── POST /copy (admin) ──────────────────────────────────────────────

@router.post("/copy", response_model=list[PublicHolidayOut], status_code=201)
async def copy_holidays(
    body: HolidayCopyRequest,
    ctx: ActingContext = Depends(require_admin()),
    db: AsyncSession = Depends(get_db),
):
    """Clone one year's holidays into another; chargeable-day results change."""
    created = await HolidayService.copy_holidays_to_year(
        db, body.source_year, body.target_year, entity_id=body.entity_id,
    )
    leave_engine_cache.invalidate()
    return created
