"""
Employee API Client

This module provides the client for the upstream employee directory service.
It performs the four raw operations and translates transport and status
failures into the gateway's typed error set. It applies no caching, rate
limiting, breaking or retrying; the resilience pipeline wraps it.

Upstream contract:
    GET    {base}        -> {"data": [Employee, ...]}
    GET    {base}/{id}   -> {"data": Employee} or 404
    POST   {base}        {name, salary, age, title} -> {"data": Employee}
    DELETE {base}        {name} -> {"data": true|false}

Error translation:
    connect / timeout / other transport error -> TransientUpstreamError
    5xx                                       -> TransientUpstreamError
    404                                       -> NotFoundError
    other 4xx                                 -> ClientRequestError
    undecodable body or envelope              -> TransientUpstreamError

Reference Documents:
- GUIDELINES pp. 2309: Connection pooling per downstream service

Pattern: Client adapter for microservice communication
"""

import time
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from employee_gateway.clients.http import create_http_client, create_http_client_from_settings
from employee_gateway.core.config import Settings
from employee_gateway.core.exceptions import (
    ClientRequestError,
    NotFoundError,
    TransientUpstreamError,
)
from employee_gateway.models.domain import CreateEmployeeInput, Employee
from employee_gateway.observability.logging import get_logger
from employee_gateway.resilience.metrics import record_upstream_request

logger = get_logger(__name__)


DEFAULT_BASE_URL = "http://localhost:8112/api/v1/employee"

OPERATION_LIST = "list"
OPERATION_GET = "get"
OPERATION_CREATE = "create"
OPERATION_DELETE = "delete"
OPERATION_PING = "ping"


class EmployeeApiClient:
    """
    Client for the upstream employee directory.

    Example:
        >>> client = EmployeeApiClient(base_url="http://localhost:8112/api/v1/employee")
        >>> employees = await client.list_employees()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize EmployeeApiClient.

        Args:
            base_url: URL of the employee collection resource
            http_client: Optional pre-configured HTTP client (for testing)
        """
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        if http_client is not None:
            self._client = http_client
            self._owns_client = False
        else:
            self._client = create_http_client()
            self._owns_client = True

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "EmployeeApiClient":
        """
        Create a client owning an HTTP client built from settings.

        Args:
            settings: Application settings
            transport: Custom transport (tests)
        """
        client = cls(
            base_url=settings.upstream_base_url,
            http_client=create_http_client_from_settings(settings, transport=transport),
        )
        client._owns_client = True
        return client

    @property
    def base_url(self) -> str:
        """URL of the employee collection resource."""
        return self._base_url

    async def close(self) -> None:
        """Close the HTTP client if owned by this instance."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "EmployeeApiClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # =========================================================================
    # Operations
    # =========================================================================

    async def list_employees(self) -> list[Employee]:
        """
        Fetch the full employee collection.

        Returns:
            Employees in upstream order (empty if the envelope carries null)

        Raises:
            TransientUpstreamError: On 5xx, transport or payload errors
            ClientRequestError: On 4xx
        """
        data = await self._send(OPERATION_LIST, "GET", self._base_url)
        if data is None:
            return []
        if not isinstance(data, list):
            raise TransientUpstreamError("Malformed employee list: 'data' is not a list")

        employees = [self._parse_employee(item) for item in data]
        logger.debug("fetched employees", count=len(employees))
        return employees

    async def get_employee(self, employee_id: str) -> Employee:
        """
        Fetch one employee by id.

        Raises:
            NotFoundError: If the upstream does not know the id
            TransientUpstreamError: On 5xx, transport or payload errors
            ClientRequestError: On other 4xx
        """
        url = f"{self._base_url}/{quote(employee_id, safe='')}"
        try:
            data = await self._send(OPERATION_GET, "GET", url)
        except NotFoundError as e:
            raise NotFoundError(
                f"Employee not found with id: {employee_id}",
                resource_id=employee_id,
            ) from e

        if data is None:
            raise NotFoundError(
                f"Employee not found with id: {employee_id}",
                resource_id=employee_id,
            )
        return self._parse_employee(data)

    async def create_employee(self, employee_input: CreateEmployeeInput) -> Employee:
        """
        Create an employee.

        Args:
            employee_input: Validated create payload

        Returns:
            The created employee with its upstream-assigned id

        Raises:
            TransientUpstreamError: On 5xx, transport or payload errors
            ClientRequestError: On 4xx
        """
        data = await self._send(
            OPERATION_CREATE, "POST", self._base_url, json=employee_input.model_dump()
        )
        if data is None:
            raise TransientUpstreamError("Failed to create employee - no data in response")

        employee = self._parse_employee(data)
        logger.info("employee created upstream", employee_id=employee.id)
        return employee

    async def delete_employee_by_name(self, name: str) -> bool:
        """
        Delete an employee by name.

        The upstream keys deletion by name, not id. If several employees
        share a name, which one is removed is up to the upstream.

        Returns:
            True once the upstream confirmed the deletion

        Raises:
            NotFoundError: If the upstream answered 404 or {"data": false}
            TransientUpstreamError: On 5xx, transport or payload errors
            ClientRequestError: On other 4xx
        """
        try:
            data = await self._send(
                OPERATION_DELETE, "DELETE", self._base_url, json={"name": name}
            )
        except NotFoundError as e:
            raise NotFoundError(f"Employee not found with name: {name}", resource_id=name) from e

        if data is not True:
            raise NotFoundError(f"Employee not deleted, name not found: {name}", resource_id=name)

        logger.info("employee deleted upstream", name=name)
        return True

    async def ping(self) -> None:
        """
        Probe the collection endpoint without decoding employees.

        Raises:
            TransientUpstreamError, ClientRequestError, NotFoundError on failure
        """
        await self._send(OPERATION_PING, "GET", self._base_url)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _send(
        self,
        operation: str,
        method: str,
        url: str,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        started = time.perf_counter()
        outcome = "success"
        try:
            try:
                response = await self._client.request(method, url, json=json)
            except httpx.TimeoutException as e:
                raise TransientUpstreamError(f"Employee API request timed out: {e}") from e
            except httpx.TransportError as e:
                raise TransientUpstreamError(f"Employee API unavailable: {e}") from e

            self._raise_for_status(operation, response)
            return self._unwrap(response)
        except Exception as e:
            outcome = type(e).__name__
            raise
        finally:
            record_upstream_request(operation, outcome, time.perf_counter() - started)

    @staticmethod
    def _raise_for_status(operation: str, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        detail = response.text[:200]
        if status == 404:
            raise NotFoundError(f"Employee API '{operation}' returned 404", status_code=404)
        if status >= 500:
            logger.warning("employee api server error", operation=operation, status_code=status)
            raise TransientUpstreamError(
                f"Employee API '{operation}' failed with HTTP {status}: {detail}",
                status_code=status,
            )
        raise ClientRequestError(
            f"Employee API '{operation}' rejected request with HTTP {status}: {detail}",
            status_code=status,
        )

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError as e:
            raise TransientUpstreamError(f"Employee API returned invalid JSON: {e}") from e

        if not isinstance(body, dict) or "data" not in body:
            raise TransientUpstreamError("Employee API response is missing the 'data' envelope")
        return body["data"]

    @staticmethod
    def _parse_employee(data: Any) -> Employee:
        try:
            return Employee.model_validate(data)
        except ValidationError as e:
            raise TransientUpstreamError(f"Malformed employee payload: {e}") from e
