"""Token lifecycle for one ChargeAmps account."""

import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp

from .config import AccountConfig
from .constants import ApiEndpoints, TimeoutDefaults
from .exceptions import (
    ChargerSyncError,
    CredentialsMissingError,
    NotAuthenticatedError,
    UnexpectedShapeError,
)
from .transport import bearer_headers, request_json

logger = logging.getLogger(__name__)


class AuthSession:
    """Holds the bearer and refresh token of one account.

    ``login`` is strict and propagates every failure, since a device cannot
    start without a token. ``renew`` is fail-soft: the stale token is kept
    and the renewal loop tries again on its own schedule.
    """

    def __init__(
        self,
        http: aiohttp.ClientSession,
        account: AccountConfig,
        base_url: str = ApiEndpoints.BASE_URL,
    ) -> None:
        self.http = http
        self.account = account
        self.base_url = base_url
        self.token: Optional[str] = None
        self.refresh_token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def auth_headers(self, operation: str) -> Dict[str, str]:
        """Build the Authorization header, failing fast without a token."""
        if self.token is None:
            raise NotAuthenticatedError(operation)
        return bearer_headers(self.token)

    def _store_tokens(self, data: Any, path: str) -> Tuple[str, str]:
        if not isinstance(data, dict) or not data.get("token"):
            raise UnexpectedShapeError(path, "token")
        self.token = data["token"]
        self.refresh_token = data.get("refreshToken")
        return self.token, self.refresh_token

    async def login(self) -> Tuple[str, str]:
        """Authenticate with email, password and API key.

        Returns:
            The new (token, refresh_token) pair.

        Raises:
            CredentialsMissingError: A credential is empty; no request is sent.
            AuthFailureError: The API rejected the credentials.
            NetworkTimeoutError: The login did not answer within 90 seconds.
            RemoteApiError: Any other API or connection failure.
        """
        missing = tuple(
            name
            for name, value in (
                ("email", self.account.email),
                ("password", self.account.password),
                ("api_key", self.account.api_key),
            )
            if not value
        )
        if missing:
            logger.error(f"Cannot log in, missing credentials: {', '.join(missing)}")
            raise CredentialsMissingError(missing)

        logger.info("ChargeAmps login started")
        data = await request_json(
            self.http,
            "POST",
            ApiEndpoints.LOGIN,
            headers={"apiKey": self.account.api_key},
            payload={"email": self.account.email, "password": self.account.password},
            timeout=TimeoutDefaults.LOGIN,
            base_url=self.base_url,
        )
        tokens = self._store_tokens(data, ApiEndpoints.LOGIN)
        logger.info("ChargeAmps login completed")
        return tokens

    async def renew(self) -> bool:
        """Exchange the current token pair for a fresh one.

        Returns:
            True if the tokens were replaced, False if the old ones were kept.
        """
        logger.info("ChargeAmps token renewal started")
        try:
            data = await request_json(
                self.http,
                "POST",
                ApiEndpoints.REFRESH_TOKEN,
                headers=self.auth_headers("renew"),
                payload={"token": self.token, "refreshToken": self.refresh_token},
                timeout=TimeoutDefaults.RENEWAL,
                base_url=self.base_url,
            )
            self._store_tokens(data, ApiEndpoints.REFRESH_TOKEN)
        except ChargerSyncError as e:
            logger.error(f"Token renewal failed, keeping current token: {e}")
            return False
        logger.info("ChargeAmps token renewed")
        return True
