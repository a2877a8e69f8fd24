"""Public holiday Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PublicHolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    date: date
    entity_id: Optional[uuid.UUID] = None
    state_region: Optional[str] = None
    country: Optional[str] = None
    is_paid: bool = True


class HolidayCopyRequest(BaseModel):
    """Payload for copying one year's holidays into another."""

    source_year: int = Field(..., ge=2000, le=2100)
    target_year: int = Field(..., ge=2000, le=2100)
    entity_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def _different_years(self) -> "HolidayCopyRequest":
        if self.source_year == self.target_year:
            raise ValueError("target_year must differ from source_year")
        return self
