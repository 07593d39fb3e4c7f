"""Models Package.

This package contains the Pydantic domain models for employees.
"""

from employee_gateway.models.domain import (
    MAX_AGE,
    MIN_AGE,
    CreateEmployeeInput,
    Employee,
)

__all__ = [
    "Employee",
    "CreateEmployeeInput",
    "MIN_AGE",
    "MAX_AGE",
]
