"""Notification service and the leave workflow dispatchers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hris.common.constants import NotificationType
from hris.notifications.models import Notification


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.info,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            id=uuid.uuid4(),
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
            is_read=False,
            created_at=datetime.now(timezone.utc),
        )
        db.add(notification)
        await db.flush()
        return notification


# ── Leave dispatchers ───────────────────────────────────────────────


def _period(leave_request) -> str:
    if leave_request.start_date == leave_request.end_date:
        return f"on {leave_request.start_date}"
    return f"from {leave_request.start_date} to {leave_request.end_date}"


async def notify_leave_submitted(
    db: AsyncSession,
    leave_request,  # hris.leave.models.LeaveRequest
    manager_id: uuid.UUID,
    employee_name: str,
) -> Notification:
    """Ask the manager to review a new leave request."""
    return await NotificationService.create_notification(
        db,
        recipient_id=manager_id,
        type=NotificationType.action_required,
        title="New Leave Request",
        message=(
            f"{employee_name} requested leave {_period(leave_request)} "
            f"({leave_request.total_days} day(s))."
        ),
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_approved(
    db: AsyncSession,
    leave_request,  # hris.leave.models.LeaveRequest
    auto: bool = False,
) -> Notification:
    """Tell the employee their leave was approved."""
    message = f"Your leave request {_period(leave_request)} has been approved."
    if auto:
        message = (
            f"Your leave request {_period(leave_request)} was approved "
            f"automatically because no manager is assigned."
        )
    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.employee_id,
        type=NotificationType.approval,
        title="Leave Request Approved",
        message=message,
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_declined(
    db: AsyncSession,
    leave_request,  # hris.leave.models.LeaveRequest
    reason: str,
) -> Notification:
    """Tell the employee their leave was declined."""
    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.employee_id,
        type=NotificationType.alert,
        title="Leave Request Declined",
        message=(
            f"Your leave request {_period(leave_request)} was declined. "
            f"Reason: {reason}"
        ),
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_cancelled(
    db: AsyncSession,
    leave_request,  # hris.leave.models.LeaveRequest
    recipient_id: uuid.UUID,
) -> Notification:
    return await NotificationService.create_notification(
        db,
        recipient_id=recipient_id,
        type=NotificationType.info,
        title="Leave Cancelled",
        message=f"The leave request {_period(leave_request)} has been cancelled.",
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )
