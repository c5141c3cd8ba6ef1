"""Typed calls against the ChargeAmps REST API.

The client is stateless apart from the auth session it reads the bearer
token from. It does not retry; retrying is the polling loop's job.
"""

from typing import Any, Dict, List, Optional

import aiohttp

from .auth import AuthSession
from .constants import ApiEndpoints, CommandDefaults, TimeoutDefaults
from .exceptions import UnexpectedShapeError
from .transport import request_json


class RemoteChargerClient:
    """Request layer for charge point status, settings and sessions."""

    def __init__(
        self,
        http: aiohttp.ClientSession,
        auth: AuthSession,
        base_url: str = ApiEndpoints.BASE_URL,
    ) -> None:
        self.http = http
        self.auth = auth
        self.base_url = base_url

    async def _call(
        self,
        method: str,
        path: str,
        *,
        payload: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        return await request_json(
            self.http,
            method,
            path,
            headers=self.auth.auth_headers(f"{method} {path}"),
            payload=payload,
            params=params,
            timeout=timeout,
            base_url=self.base_url,
        )

    async def get_owned_devices(self) -> List[Dict[str, Any]]:
        path = ApiEndpoints.OWNED_CHARGEPOINTS
        data = await self._call("GET", path, timeout=TimeoutDefaults.DATA)
        if data is None:
            return []
        if not isinstance(data, list):
            raise UnexpectedShapeError(path, details="expected a list of charge points")
        return data

    async def get_status(self, device_id: str) -> Dict[str, Any]:
        """Fetch live connector status, consumption and phase measurements."""
        path = ApiEndpoints.STATUS.format(device_id=device_id)
        data = await self._call("GET", path, timeout=TimeoutDefaults.DATA)
        if not isinstance(data, dict):
            raise UnexpectedShapeError(path, details="expected an object")
        return data

    async def get_device_settings(self, device_id: str) -> Dict[str, Any]:
        path = ApiEndpoints.DEVICE_SETTINGS.format(device_id=device_id)
        data = await self._call("GET", path, timeout=TimeoutDefaults.DATA)
        if not isinstance(data, dict):
            raise UnexpectedShapeError(path, details="expected an object")
        return data

    async def put_device_settings(self, device_id: str, settings: Dict[str, Any]) -> Any:
        path = ApiEndpoints.DEVICE_SETTINGS.format(device_id=device_id)
        return await self._call("PUT", path, payload={"id": device_id, **settings})

    async def get_connector_settings(
        self, device_id: str, connector: int
    ) -> Dict[str, Any]:
        path = ApiEndpoints.CONNECTOR_SETTINGS.format(
            device_id=device_id, connector=connector
        )
        data = await self._call("GET", path, timeout=TimeoutDefaults.DATA)
        if not isinstance(data, dict):
            raise UnexpectedShapeError(path, details="expected an object")
        return data

    async def put_connector_settings(
        self, device_id: str, connector: int, settings: Dict[str, Any]
    ) -> Any:
        """Write the full connector settings tuple.

        ``settings`` holds ``maxCurrent``, ``rfidLock``, ``mode`` and
        ``cableLock``; the charge point id is added here.
        """
        path = ApiEndpoints.CONNECTOR_SETTINGS.format(
            device_id=device_id, connector=connector
        )
        return await self._call(
            "PUT", path, payload={"chargePointId": device_id, **settings}
        )

    async def put_remote_stop(self, device_id: str, connector: int) -> Any:
        path = ApiEndpoints.REMOTE_STOP.format(device_id=device_id, connector=connector)
        return await self._call("PUT", path, payload={})

    async def get_charging_sessions(
        self,
        device_id: str,
        connector: int,
        max_count: int = CommandDefaults.CHARGING_SESSIONS_MAX_COUNT,
    ) -> List[Dict[str, Any]]:
        """Fetch the most recent charging sessions, newest first."""
        path = ApiEndpoints.CHARGING_SESSIONS.format(
            device_id=device_id, connector=connector
        )
        data = await self._call(
            "GET", path, params={"maxCount": max_count}, timeout=TimeoutDefaults.DATA
        )
        if data is None:
            return []
        if not isinstance(data, list):
            raise UnexpectedShapeError(path, details="expected a list of sessions")
        return data
