"""Auth dependencies — JWT validation, acting context, role enforcement.

Tokens are issued by the external identity provider; this service only
verifies them. ``sub`` carries the employee id and ``role`` the user role.
"""

from __future__ import annotations

import uuid
from typing import Callable, Optional

from fastapi import Depends, Header, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hris.common.constants import ActingMode, EmploymentStatus, UserRole
from hris.common.exceptions import ForbiddenException
from hris.config import settings
from hris.core_hr.models import Employee
from hris.database import get_db
from hris.leave.permissions import ActingContext, is_acting_as_admin


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """Validate the JWT and return the authenticated, non-terminated Employee."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    try:
        employee_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    result = await db.execute(
        select(Employee).where(
            Employee.id == employee_id,
            Employee.employment_status != EmploymentStatus.terminated,
        ),
    )
    employee = result.scalars().first()
    if employee is None:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    role_str = payload.get("role", UserRole.employee.value)
    try:
        role = UserRole(role_str)
    except ValueError:
        role = UserRole.employee
    request.state.user_role = role

    return employee


# ── Acting context ──────────────────────────────────────────────────

async def get_acting_context(
    request: Request,
    employee: Employee = Depends(get_current_user),
    x_acting_mode: Optional[str] = Header(default=None),
) -> ActingContext:
    """Build the explicit acting context from the token role and ``X-Acting-Mode``."""
    try:
        mode = ActingMode(x_acting_mode) if x_acting_mode else ActingMode.admin
    except ValueError:
        raise HTTPException(status_code=400, detail="X-Acting-Mode must be 'admin' or 'staff'.")
    return ActingContext.for_employee(employee, request.state.user_role, mode)


def require_admin() -> Callable:
    """Return a dependency that only admits admins acting in admin mode."""

    async def _check(ctx: ActingContext = Depends(get_acting_context)) -> ActingContext:
        if not is_acting_as_admin(ctx):
            raise ForbiddenException(
                detail="This action requires an administrator acting in admin mode.",
            )
        return ctx

    return _check
