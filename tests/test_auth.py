"""Tests for the token lifecycle."""

import pytest
from conftest import FakeHttp

from chargeamps_sync.auth import AuthSession
from chargeamps_sync.config import AccountConfig
from chargeamps_sync.exceptions import (
    AuthFailureError,
    CredentialsMissingError,
    NotAuthenticatedError,
    UnexpectedShapeError,
)

ACCOUNT = AccountConfig(email="owner@example.com", password="pw", api_key="key-123")


class TestLogin:
    @pytest.mark.asyncio
    async def test_successful_login_stores_tokens(self) -> None:
        http = FakeHttp(body={"token": "tok", "refreshToken": "ref", "user": {}})
        auth = AuthSession(http, ACCOUNT, base_url="https://api.test")

        assert await auth.login() == ("tok", "ref")

        assert auth.is_authenticated
        call = http.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == "https://api.test/auth/login"
        assert call["headers"] == {"apiKey": "key-123"}
        assert call["json"] == {"email": "owner@example.com", "password": "pw"}
        assert call["timeout"].total == 90

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "account,missing",
        [
            (AccountConfig("", "pw", "key"), ("email",)),
            (AccountConfig("a@b.c", "pw", ""), ("api_key",)),
            (AccountConfig(), ("email", "password", "api_key")),
        ],
    )
    async def test_missing_credentials_never_hit_network(
        self, account, missing
    ) -> None:
        http = FakeHttp(body={"token": "tok"})
        auth = AuthSession(http, account)

        with pytest.raises(CredentialsMissingError) as exc_info:
            await auth.login()

        assert exc_info.value.missing == missing
        assert http.calls == []
        assert not auth.is_authenticated

    @pytest.mark.asyncio
    async def test_rejected_login_propagates(self) -> None:
        auth = AuthSession(FakeHttp(status=401, body="bad credentials"), ACCOUNT)

        with pytest.raises(AuthFailureError):
            await auth.login()
        assert auth.token is None

    @pytest.mark.asyncio
    async def test_response_without_token(self) -> None:
        auth = AuthSession(FakeHttp(body={"message": "ok"}), ACCOUNT)

        with pytest.raises(UnexpectedShapeError):
            await auth.login()


class TestRenew:
    @pytest.mark.asyncio
    async def test_renew_replaces_tokens(self) -> None:
        http = FakeHttp(body={"token": "tok", "refreshToken": "ref"})
        auth = AuthSession(http, ACCOUNT)
        await auth.login()

        http.respond(200, {"token": "tok2", "refreshToken": "ref2"})
        assert await auth.renew() is True

        call = http.calls[1]
        assert call["url"].endswith("/auth/refreshtoken")
        assert call["headers"] == {"Authorization": "Bearer tok"}
        assert call["json"] == {"token": "tok", "refreshToken": "ref"}
        assert call["timeout"].total == 120
        assert (auth.token, auth.refresh_token) == ("tok2", "ref2")

    @pytest.mark.asyncio
    async def test_failed_renew_keeps_old_token(self) -> None:
        http = FakeHttp(body={"token": "tok", "refreshToken": "ref"})
        auth = AuthSession(http, ACCOUNT)
        await auth.login()

        http.respond(500, "server error")
        assert await auth.renew() is False
        assert auth.token == "tok"

    @pytest.mark.asyncio
    async def test_renew_before_login(self) -> None:
        http = FakeHttp(body={})
        auth = AuthSession(http, ACCOUNT)

        assert await auth.renew() is False
        assert http.calls == []


class TestAuthHeaders:
    def test_requires_token(self) -> None:
        auth = AuthSession(FakeHttp(), ACCOUNT)
        with pytest.raises(NotAuthenticatedError):
            auth.auth_headers("GET /chargepoints/owned")

    def test_bearer_header(self) -> None:
        auth = AuthSession(FakeHttp(), ACCOUNT)
        auth.token = "abc"
        assert auth.auth_headers("x") == {"Authorization": "Bearer abc"}
