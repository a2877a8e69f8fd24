"""Core HR module — Employee and CompanyEntity models."""

from hris.core_hr.models import CompanyEntity, Employee

__all__ = ["CompanyEntity", "Employee"]
