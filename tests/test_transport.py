"""Tests for the HTTP request layer."""

import asyncio

import aiohttp
import pytest
from conftest import FakeHttp

from chargeamps_sync.exceptions import (
    AuthFailureError,
    NetworkTimeoutError,
    RemoteApiError,
    UnexpectedShapeError,
)
from chargeamps_sync.transport import bearer_headers, request_json


class TestRequestJson:
    @pytest.mark.asyncio
    async def test_decodes_json_body(self) -> None:
        http = FakeHttp(body={"connectorStatuses": []})

        data = await request_json(
            http,
            "GET",
            "/chargepoints/CP-1/status",
            headers=bearer_headers("abc"),
            params={"maxCount": 2},
            timeout=90,
            base_url="https://api.test",
        )

        assert data == {"connectorStatuses": []}
        call = http.calls[0]
        assert call["method"] == "GET"
        assert call["url"] == "https://api.test/chargepoints/CP-1/status"
        assert call["headers"] == {"Authorization": "Bearer abc"}
        assert call["params"] == {"maxCount": 2}
        assert call["timeout"].total == 90

    @pytest.mark.asyncio
    async def test_session_default_timeout(self) -> None:
        http = FakeHttp(body={})
        await request_json(http, "PUT", "/x", payload={"a": 1})

        assert "timeout" not in http.calls[0]
        assert http.calls[0]["json"] == {"a": 1}

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self) -> None:
        http = FakeHttp(body="")
        assert await request_json(http, "PUT", "/remotestop") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_rejection(self, status) -> None:
        http = FakeHttp(status=status, body="denied")
        with pytest.raises(AuthFailureError) as exc_info:
            await request_json(http, "GET", "/chargepoints/owned")
        assert exc_info.value.status == status

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        http = FakeHttp(status=500, body="oops")
        with pytest.raises(RemoteApiError) as exc_info:
            await request_json(http, "GET", "/x")
        assert exc_info.value.status == 500
        assert "oops" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        http = FakeHttp(body="{not json")
        with pytest.raises(UnexpectedShapeError):
            await request_json(http, "GET", "/x")

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        http = FakeHttp(error=asyncio.TimeoutError())
        with pytest.raises(NetworkTimeoutError) as exc_info:
            await request_json(http, "POST", "/auth/login", timeout=90)
        assert exc_info.value.timeout == 90

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        http = FakeHttp(error=aiohttp.ClientConnectionError("refused"))
        with pytest.raises(RemoteApiError) as exc_info:
            await request_json(http, "GET", "/x")
        assert exc_info.value.status is None
