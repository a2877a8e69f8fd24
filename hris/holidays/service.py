"""Holiday provider — which public holidays apply to an employee's entity and region.

A date can carry several holiday rows scoped to different entities or
regions; callers always receive one holiday per date.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hris.holidays.models import PublicHoliday
from hris.leave.accrual import add_years

logger = logging.getLogger(__name__)


def dedupe_by_date(holidays: Sequence[PublicHoliday]) -> list[PublicHoliday]:
    """Keep the first holiday per date, ordered by date.

    Entity-specific rows win over global rows for the same date so the
    employee sees their entity's holiday name.
    """
    ranked = sorted(
        holidays,
        key=lambda h: (h.date, h.entity_id is None, h.state_region is None),
    )
    seen: set[date] = set()
    unique: list[PublicHoliday] = []
    for holiday in ranked:
        if holiday.date in seen:
            continue
        seen.add(holiday.date)
        unique.append(holiday)
    return unique


class HolidayService:
    """Async lookups over the ``public_holidays`` table."""

    @staticmethod
    def _scope_filters(
        entity_id: Optional[uuid.UUID],
        state_region: Optional[str],
        country: Optional[str],
    ) -> list:
        filters = [PublicHoliday.is_active.is_(True)]
        if entity_id is not None:
            filters.append(
                or_(
                    PublicHoliday.entity_id.is_(None),
                    PublicHoliday.entity_id == entity_id,
                )
            )
        else:
            filters.append(PublicHoliday.entity_id.is_(None))
        if state_region:
            filters.append(
                or_(
                    PublicHoliday.state_region.is_(None),
                    PublicHoliday.state_region == state_region,
                )
            )
        else:
            filters.append(PublicHoliday.state_region.is_(None))
        if country:
            filters.append(
                or_(
                    PublicHoliday.country.is_(None),
                    PublicHoliday.country == country,
                )
            )
        return filters

    @staticmethod
    async def get_public_holidays_for_entity(
        db: AsyncSession,
        entity_id: Optional[uuid.UUID] = None,
        *,
        state_region: Optional[str] = None,
        country: Optional[str] = None,
        year: Optional[int] = None,
    ) -> list[PublicHoliday]:
        """Active holidays for an entity/region, one per date, sorted by date."""
        stmt = select(PublicHoliday).where(
            *HolidayService._scope_filters(entity_id, state_region, country),
        )
        if year is not None:
            stmt = stmt.where(
                PublicHoliday.date >= date(year, 1, 1),
                PublicHoliday.date <= date(year, 12, 31),
            )
        result = await db.execute(stmt)
        return dedupe_by_date(result.scalars().all())

    @staticmethod
    async def get_public_holidays_in_range(
        db: AsyncSession,
        start_date: date,
        end_date: date,
        *,
        entity_id: Optional[uuid.UUID] = None,
        state_region: Optional[str] = None,
        country: Optional[str] = None,
    ) -> list[PublicHoliday]:
        """Holidays applicable to the scope that fall within ``[start_date, end_date]``."""
        result = await db.execute(
            select(PublicHoliday).where(
                *HolidayService._scope_filters(entity_id, state_region, country),
                PublicHoliday.date >= start_date,
                PublicHoliday.date <= end_date,
            )
        )
        return dedupe_by_date(result.scalars().all())

    @staticmethod
    async def is_public_holiday(
        db: AsyncSession,
        day: date,
        *,
        entity_id: Optional[uuid.UUID] = None,
        state_region: Optional[str] = None,
        country: Optional[str] = None,
    ) -> bool:
        holidays = await HolidayService.get_public_holidays_in_range(
            db,
            day,
            day,
            entity_id=entity_id,
            state_region=state_region,
            country=country,
        )
        return bool(holidays)

    @staticmethod
    async def copy_holidays_to_year(
        db: AsyncSession,
        source_year: int,
        target_year: int,
        *,
        entity_id: Optional[uuid.UUID] = None,
    ) -> list[PublicHoliday]:
        """Clone a year's active holidays into another year.

        With ``entity_id`` only that entity's rows are copied, otherwise only
        the global rows. Rows already present in the target year with the
        same date, entity and region are skipped. Returns the newly created
        rows.
        """
        offset = target_year - source_year
        stmt = select(PublicHoliday).where(
            PublicHoliday.is_active.is_(True),
            PublicHoliday.date >= date(source_year, 1, 1),
            PublicHoliday.date <= date(source_year, 12, 31),
        )
        if entity_id is not None:
            stmt = stmt.where(PublicHoliday.entity_id == entity_id)
        else:
            stmt = stmt.where(PublicHoliday.entity_id.is_(None))
        source = (await db.execute(stmt)).scalars().all()

        existing_result = await db.execute(
            select(PublicHoliday).where(
                PublicHoliday.date >= date(target_year, 1, 1),
                PublicHoliday.date <= date(target_year, 12, 31),
            )
        )
        existing = {
            (h.date, h.entity_id, h.state_region)
            for h in existing_result.scalars().all()
        }

        created: list[PublicHoliday] = []
        for holiday in source:
            new_date = add_years(holiday.date, offset)
            key = (new_date, holiday.entity_id, holiday.state_region)
            if key in existing:
                continue
            copy = PublicHoliday(
                id=uuid.uuid4(),
                name=holiday.name,
                date=new_date,
                entity_id=holiday.entity_id,
                state_region=holiday.state_region,
                country=holiday.country,
                is_paid=holiday.is_paid,
                is_active=True,
            )
            db.add(copy)
            existing.add(key)
            created.append(copy)

        await db.flush()
        logger.info(
            "Copied %d holidays from %d to %d (entity=%s)",
            len(created), source_year, target_year, entity_id,
        )
        return created
