"""Public holiday ORM model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hris.database import Base

class PublicHoliday(Base):
    """A public holiday.

    ``entity_id`` NULL means the holiday applies to every entity;
    ``state_region`` NULL means it applies to every region. The same date may
    appear in several rows scoped differently.
    """

    __tablename__ = "public_holidays"
    __table_args__ = (
        sa.Index("ix_public_holidays_date", "date"),
        sa.Index("ix_public_holidays_entity", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("company_entities.id"),
    )
    state_region: Mapped[Optional[str]] = mapped_column(sa.String(50))
    country: Mapped[Optional[str]] = mapped_column(sa.String(2))
    is_paid: Mapped[bool] = mapped_column(sa.Boolean, server_default=sa.text("TRUE"))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, server_default=sa.text("TRUE"))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    def __repr__(self) -> str:
        return f"<PublicHoliday {self.date} {self.name}>"
