"""
Tests for the Employee API Client.

Reference Documents:
- GUIDELINES pp. 2309: Connection pooling per downstream service

This module tests:
- The four raw operations against a fake upstream
- Translation of status codes and transport errors into typed errors
- Malformed payload handling
"""

import json
from unittest.mock import ANY, patch

import httpx
import pytest
import pytest_asyncio

from employee_gateway.clients.employee_api import EmployeeApiClient
from employee_gateway.core.exceptions import (
    ClientRequestError,
    NotFoundError,
    TransientUpstreamError,
)
from employee_gateway.models.domain import CreateEmployeeInput, Employee


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(test_settings, fake_upstream):
    """Client wired to the fake upstream."""
    api_client = EmployeeApiClient.from_settings(test_settings, transport=fake_upstream.transport)
    yield api_client
    await api_client.close()


def _client_returning(test_settings, response: httpx.Response) -> EmployeeApiClient:
    transport = httpx.MockTransport(lambda request: response)
    return EmployeeApiClient.from_settings(test_settings, transport=transport)


# =============================================================================
# Operations
# =============================================================================


class TestListEmployees:
    """GET {base}"""

    @pytest.mark.asyncio
    async def test_returns_employees_in_upstream_order(self, client) -> None:
        employees = await client.list_employees()

        assert [e.name for e in employees] == ["Tiger Nixon", "Garrett Winters", "Ashton Cox"]
        assert all(isinstance(e, Employee) for e in employees)

    @pytest.mark.asyncio
    async def test_null_data_is_empty_list(self, test_settings) -> None:
        api_client = _client_returning(test_settings, httpx.Response(200, json={"data": None}))

        assert await api_client.list_employees() == []
        await api_client.close()

    @pytest.mark.asyncio
    async def test_records_upstream_metric(self, client) -> None:
        with patch(
            "employee_gateway.clients.employee_api.record_upstream_request"
        ) as mock_record:
            await client.list_employees()

        mock_record.assert_called_once_with("list", "success", ANY)


class TestGetEmployee:
    """GET {base}/{id}"""

    @pytest.mark.asyncio
    async def test_returns_employee(self, client, fake_upstream) -> None:
        employee = await client.get_employee("2")

        assert employee.name == "Garrett Winters"
        assert fake_upstream.requests[-1].url.path == "/api/v1/employee/2"

    @pytest.mark.asyncio
    async def test_unknown_id_raises_not_found(self, client) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await client.get_employee("404")

        assert exc_info.value.resource_id == "404"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_null_data_raises_not_found(self, test_settings) -> None:
        api_client = _client_returning(test_settings, httpx.Response(200, json={"data": None}))

        with pytest.raises(NotFoundError):
            await api_client.get_employee("1")
        await api_client.close()


class TestCreateEmployee:
    """POST {base}"""

    @pytest.mark.asyncio
    async def test_sends_plain_field_names(self, client, fake_upstream) -> None:
        payload = CreateEmployeeInput(name="John Smith", salary=75000, age=30, title="Engineer")

        created = await client.create_employee(payload)

        request = fake_upstream.requests[-1]
        assert request.method == "POST"
        assert json.loads(request.content) == {
            "name": "John Smith",
            "salary": 75000,
            "age": 30,
            "title": "Engineer",
        }
        assert created.id == "1001"
        assert created.name == "John Smith"

    @pytest.mark.asyncio
    async def test_null_data_is_transient(self, test_settings) -> None:
        api_client = _client_returning(test_settings, httpx.Response(200, json={"data": None}))
        payload = CreateEmployeeInput(name="A", salary=1, age=30, title="T")

        with pytest.raises(TransientUpstreamError):
            await api_client.create_employee(payload)
        await api_client.close()


class TestDeleteEmployeeByName:
    """DELETE {base} with {name}"""

    @pytest.mark.asyncio
    async def test_deletes_by_name(self, client, fake_upstream) -> None:
        assert await client.delete_employee_by_name("Ashton Cox") is True

        request = fake_upstream.requests[-1]
        assert request.method == "DELETE"
        assert json.loads(request.content) == {"name": "Ashton Cox"}
        assert [e["employee_name"] for e in fake_upstream.employees] == [
            "Tiger Nixon",
            "Garrett Winters",
        ]

    @pytest.mark.asyncio
    async def test_data_false_raises_not_found(self, client) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await client.delete_employee_by_name("Nobody")

        assert exc_info.value.resource_id == "Nobody"


# =============================================================================
# Error Translation
# =============================================================================


class TestErrorTranslation:
    """Status codes and transport failures become typed errors."""

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    @pytest.mark.asyncio
    async def test_server_errors_are_transient(self, client, fake_upstream, status) -> None:
        fake_upstream.fail_with(status)

        with pytest.raises(TransientUpstreamError) as exc_info:
            await client.list_employees()

        assert exc_info.value.status_code == status

    @pytest.mark.parametrize("status", [400, 401, 409, 422, 429])
    @pytest.mark.asyncio
    async def test_client_errors_are_not_transient(self, client, fake_upstream, status) -> None:
        fake_upstream.fail_with(status)

        with pytest.raises(ClientRequestError) as exc_info:
            await client.list_employees()

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_connect_error_is_transient(self, client, fake_upstream) -> None:
        fake_upstream.fail_with(httpx.ConnectError("connection refused"))

        with pytest.raises(TransientUpstreamError) as exc_info:
            await client.list_employees()

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, client, fake_upstream) -> None:
        fake_upstream.fail_with(httpx.ReadTimeout("read timed out"))

        with pytest.raises(TransientUpstreamError, match="timed out"):
            await client.get_employee("1")

    @pytest.mark.asyncio
    async def test_invalid_json_is_transient(self, test_settings) -> None:
        api_client = _client_returning(test_settings, httpx.Response(200, content=b"<html>"))

        with pytest.raises(TransientUpstreamError, match="invalid JSON"):
            await api_client.list_employees()
        await api_client.close()

    @pytest.mark.asyncio
    async def test_missing_envelope_is_transient(self, test_settings) -> None:
        api_client = _client_returning(test_settings, httpx.Response(200, json={"employees": []}))

        with pytest.raises(TransientUpstreamError, match="envelope"):
            await api_client.list_employees()
        await api_client.close()

    @pytest.mark.asyncio
    async def test_malformed_employee_is_transient(self, test_settings) -> None:
        api_client = _client_returning(
            test_settings, httpx.Response(200, json={"data": [{"id": "1"}]})
        )

        with pytest.raises(TransientUpstreamError, match="Malformed"):
            await api_client.list_employees()
        await api_client.close()

    @pytest.mark.asyncio
    async def test_null_employee_id_is_transient(self, test_settings, payload_factory) -> None:
        record = payload_factory("1", "Tiger Nixon", 320800)
        record["id"] = None
        api_client = _client_returning(test_settings, httpx.Response(200, json={"data": [record]}))

        with pytest.raises(TransientUpstreamError, match="Malformed"):
            await api_client.list_employees()
        await api_client.close()


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    """Client ownership."""

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self, mock_http_client) -> None:
        api_client = EmployeeApiClient(http_client=mock_http_client)

        await api_client.close()

        mock_http_client.aclose.assert_not_called()

    @pytest.mark.asyncio
    async def test_context_manager_closes_owned_client(self, test_settings) -> None:
        async with EmployeeApiClient.from_settings(test_settings) as api_client:
            http_client = api_client._client

        assert http_client.is_closed

    def test_base_url_trailing_slash_stripped(self) -> None:
        api_client = EmployeeApiClient(base_url="http://upstream.test/api/v1/employee/")

        assert api_client.base_url == "http://upstream.test/api/v1/employee"
