"""
Employee Service

This module provides EmployeeService, the public read/write facade of the
gateway. Every upstream call goes through the shared ResiliencePipeline;
search, highest salary and top earners are computed in memory over the
(cached) collection.

Behavior summary:
- Reads never raise on upstream trouble; they degrade to the documented
  fallback values ([] / None / 0).
- Not-found on reads is an absent result, not an error.
- create/delete validate locally first and fail loudly with
  UpstreamUnavailableError when the upstream cannot be reached.

Known limitation:
    The upstream deletes by name. If several employees share a name,
    delete_by_id may remove a different one than the id resolved to;
    the upstream decides.

Reference Documents:
- GUIDELINES pp. 211: Service layers orchestrating downstream calls
- Architecture Patterns with Python (Percival & Gregory): Service layer

Pattern: Facade over the resilience pipeline
"""

from functools import partial
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from employee_gateway.clients.employee_api import EmployeeApiClient
from employee_gateway.core.exceptions import (
    DEGRADABLE_ERRORS,
    InvalidArgumentError,
    NotFoundError,
    UpstreamUnavailableError,
)
from employee_gateway.models.domain import CreateEmployeeInput, Employee
from employee_gateway.observability.logging import get_logger
from employee_gateway.resilience.pipeline import Operation, ResiliencePipeline
from employee_gateway.services.cache import COLLECTION_KEY

logger = get_logger(__name__)


TOP_EARNERS_LIMIT = 10


# =============================================================================
# Derived computations
# =============================================================================


def highest_salary_of(employees: list[Employee]) -> int:
    """Maximum salary, 0 for an empty collection."""
    return max((e.salary for e in employees), default=0)


def top_earner_names(employees: list[Employee], limit: int = TOP_EARNERS_LIMIT) -> list[str]:
    """
    Names of the best paid employees, highest salary first.

    sorted() is stable, so equal salaries keep their fetch order.
    """
    ranked = sorted(employees, key=lambda e: -e.salary)
    return [e.name for e in ranked[:limit]]


def filter_by_name(employees: list[Employee], fragment: str) -> list[Employee]:
    """Employees whose name contains `fragment`, case-insensitively."""
    needle = fragment.casefold()
    return [e for e in employees if needle in e.name.casefold()]


def _validation_messages(error: ValidationError) -> list[str]:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "input"
        messages.append(f"{location}: {detail['msg']}")
    return messages


# =============================================================================
# EmployeeService
# =============================================================================


class EmployeeService:
    """
    Resilient facade over the upstream employee directory.

    Build it through `employee_gateway.dependencies.build_employee_service`
    to share the single process-wide pipeline.

    Example:
        >>> service = build_employee_service()
        >>> names = await service.top_ten_by_earnings()
        >>> await service.aclose()
    """

    def __init__(self, client: EmployeeApiClient, pipeline: ResiliencePipeline) -> None:
        """
        Initialize EmployeeService.

        Args:
            client: Upstream employee API client
            pipeline: Shared resilience pipeline
        """
        self._client = client
        self._pipeline = pipeline

    @property
    def client(self) -> EmployeeApiClient:
        return self._client

    @property
    def pipeline(self) -> ResiliencePipeline:
        return self._pipeline

    async def aclose(self) -> None:
        """Release the upstream HTTP client."""
        await self._client.close()

    async def __aenter__(self) -> "EmployeeService":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_all(self) -> list[Employee]:
        """
        Return every employee (cached).

        Returns:
            Employees in upstream order; [] if the upstream is unavailable
        """
        return await self._fetch_collection(use_fallback=True)

    async def search_by_name(self, fragment: Optional[str]) -> list[Employee]:
        """
        Return employees whose name contains `fragment`, ignoring case.

        An empty fragment matches every employee.

        Raises:
            InvalidArgumentError: If fragment is None or not a string
        """
        if fragment is None:
            raise InvalidArgumentError("Search fragment must not be None", field="name")
        if not isinstance(fragment, str):
            raise InvalidArgumentError("Search fragment must be a string", field="name")

        employees = await self.list_all()
        matches = filter_by_name(employees, fragment)
        logger.debug("search by name", fragment=fragment, matches=len(matches))
        return matches

    async def get_by_id(self, employee_id: str) -> Optional[Employee]:
        """
        Return one employee (cached).

        Returns:
            The employee, or None if unknown upstream or the upstream is unavailable

        Raises:
            InvalidArgumentError: If the id is empty
        """
        self._check_id(employee_id)
        return await self._resolve(employee_id, use_fallback=True)

    async def highest_salary(self) -> int:
        """Return the highest salary, 0 for an empty or unavailable collection."""
        return await self._pipeline.derive(
            Operation.HIGHEST_SALARY,
            partial(self._fetch_collection, use_fallback=False),
            highest_salary_of,
        )

    async def top_ten_by_earnings(self) -> list[str]:
        """Return the names of the ten best paid employees, best paid first."""
        return await self._pipeline.derive(
            Operation.TOP_TEN,
            partial(self._fetch_collection, use_fallback=False),
            top_earner_names,
        )

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(
        self,
        employee_input: Union[CreateEmployeeInput, Mapping[str, Any]],
    ) -> Employee:
        """
        Create an employee.

        Args:
            employee_input: Create payload (model or mapping with
                name, salary, age, title)

        Returns:
            The created employee with its upstream-assigned id

        Raises:
            InvalidArgumentError: If the payload is invalid (nothing is sent)
            UpstreamUnavailableError: If the upstream cannot be reached
            RateLimitExceededError: If no rate limiter permit was available
            ClientRequestError: If the upstream rejected the payload
        """
        validated = self._validate_create(employee_input)
        employee = await self._pipeline.execute(
            Operation.CREATE,
            partial(self._client.create_employee, validated),
        )
        logger.info("employee created", employee_id=employee.id)
        return employee

    async def delete_by_id(self, employee_id: str) -> str:
        """
        Delete an employee by id.

        The id is resolved to a name first, since the upstream deletes by name.

        Returns:
            Name of the deleted employee

        Raises:
            InvalidArgumentError: If the id is empty
            NotFoundError: If the id does not resolve (delete is not sent)
            UpstreamUnavailableError: If the upstream cannot be reached
            RateLimitExceededError: If no rate limiter permit was available
        """
        self._check_id(employee_id)

        try:
            employee = await self._resolve(employee_id, use_fallback=False)
        except DEGRADABLE_ERRORS as e:
            logger.error(
                "could not resolve employee before delete",
                employee_id=employee_id,
                error=str(e),
            )
            raise UpstreamUnavailableError(Operation.DELETE.value) from e

        if employee is None:
            raise NotFoundError(
                f"Employee not found with id: {employee_id}",
                resource_id=employee_id,
            )

        await self._pipeline.execute(
            Operation.DELETE,
            partial(self._client.delete_employee_by_name, employee.name),
        )
        logger.info("employee deleted", employee_id=employee_id, name=employee.name)
        return employee.name

    # =========================================================================
    # Internals
    # =========================================================================

    async def _fetch_collection(self, use_fallback: bool) -> list[Employee]:
        try:
            employees = await self._pipeline.execute(
                Operation.LIST_ALL,
                self._client.list_employees,
                cache=self._pipeline.cache.collection,
                cache_key=COLLECTION_KEY,
                use_fallback=use_fallback,
            )
        except NotFoundError:
            logger.warning("employee collection not found upstream")
            return []
        # Callers get their own list; the cached one is shared.
        return list(employees)

    async def _resolve(self, employee_id: str, use_fallback: bool) -> Optional[Employee]:
        try:
            return await self._pipeline.execute(
                Operation.GET_BY_ID,
                partial(self._client.get_employee, employee_id),
                cache=self._pipeline.cache.by_id,
                cache_key=employee_id,
                use_fallback=use_fallback,
            )
        except NotFoundError:
            return None

    @staticmethod
    def _check_id(employee_id: Optional[str]) -> None:
        if employee_id is None or not str(employee_id).strip():
            raise InvalidArgumentError("Employee id must not be empty", field="id")

    @staticmethod
    def _validate_create(
        employee_input: Union[CreateEmployeeInput, Mapping[str, Any], None],
    ) -> CreateEmployeeInput:
        if employee_input is None:
            raise InvalidArgumentError("Employee input must not be None", field="input")

        if isinstance(employee_input, CreateEmployeeInput):
            data = employee_input.model_dump()
        elif isinstance(employee_input, Mapping):
            data = dict(employee_input)
        else:
            raise InvalidArgumentError(
                f"Employee input must be a mapping, got {type(employee_input).__name__}",
                field="input",
            )
        try:
            return CreateEmployeeInput.model_validate(data)
        except ValidationError as e:
            messages = _validation_messages(e)
            first = e.errors()[0]["loc"]
            raise InvalidArgumentError(
                f"Invalid employee input: {'; '.join(messages)}",
                field=str(first[0]) if first else None,
                errors=messages,
            ) from e
