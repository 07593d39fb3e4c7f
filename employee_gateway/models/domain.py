"""
Domain Models

This module contains the employee domain models exchanged with the upstream
employee directory and handed to callers of the employee service.

Upstream wire format (envelope `{"data": ...}`):
    {
        "id": "4a3a170b-22cd-4ac2-aad1-9bb5b34a1507",
        "employee_name": "Tiger Nixon",
        "employee_salary": 320800,
        "employee_age": 61,
        "employee_title": "Vice Chair Executive Principal",
        "employee_email": "tnixon@company.com"
    }

Create payload sent upstream: {"name", "salary", "age", "title"}.

Pattern: Domain models as value objects (Percival & Gregory pp. 59-65)
Pattern: Pydantic for validation at boundaries (Sinha pp. 193-195)
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


MIN_AGE = 16
MAX_AGE = 75


# =============================================================================
# Employee
# =============================================================================


class Employee(BaseModel):
    """
    An employee as known by the upstream directory.

    Immutable once constructed. Accepts both the upstream wire names
    (employee_name, ...) and the plain field names.

    Attributes:
        id: Opaque unique identifier assigned by the upstream
        name: Full name
        salary: Annual salary
        age: Age in years
        title: Job title
        email: Email address, if the upstream provides one
    """

    id: str = Field(..., description="Opaque unique identifier")
    name: str = Field(..., alias="employee_name", description="Full name")
    salary: int = Field(..., alias="employee_salary", description="Annual salary")
    age: int = Field(..., alias="employee_age", description="Age in years")
    title: str = Field(..., alias="employee_title", description="Job title")
    email: Optional[str] = Field(
        default=None, alias="employee_email", description="Email address"
    )

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> str:
        """Identifiers are opaque tokens; UUIDs and ints become strings."""
        if isinstance(v, bool) or not isinstance(v, (str, int, UUID)):
            raise ValueError(f"id must be a string, integer or UUID, got {type(v).__name__}")
        return str(v)


# =============================================================================
# CreateEmployeeInput
# =============================================================================


class CreateEmployeeInput(BaseModel):
    """
    Input for creating an employee.

    Validation rules: non-blank name and title, salary > 0,
    MIN_AGE <= age <= MAX_AGE.

    Example:
        >>> CreateEmployeeInput(name="John Smith", salary=75000, age=30,
        ...                     title="Software Engineer")
    """

    name: str = Field(..., description="Full name")
    salary: int = Field(..., gt=0, description="Annual salary")
    age: int = Field(..., ge=MIN_AGE, le=MAX_AGE, description="Age in years")
    title: str = Field(..., description="Job title")

    model_config = {"frozen": True}

    @field_validator("name", "title")
    @classmethod
    def not_blank(cls, v: str) -> str:
        """Reject empty or whitespace-only text."""
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()
