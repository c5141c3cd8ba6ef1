"""HTTP plumbing shared by the auth session and the charger client.

Every request to the vendor API goes through :func:`request_json`, which
applies the per-call timeout and translates aiohttp failures into the
engine's exception taxonomy. Nothing here retries.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from .constants import ApiEndpoints, TimeoutDefaults
from .exceptions import (
    AuthFailureError,
    NetworkTimeoutError,
    RemoteApiError,
    UnexpectedShapeError,
)
from .logging_utils import log_api_call

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "*/*",
    "User-Agent": "chargeamps-sync/1.0",
}


def create_http_session(timeout: float = TimeoutDefaults.CLIENT) -> aiohttp.ClientSession:
    """Create the connection pool used for one account.

    Must be called from within a running event loop.
    """
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
        headers=DEFAULT_HEADERS,
    )


def bearer_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def request_json(
    http: aiohttp.ClientSession,
    method: str,
    path: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    payload: Optional[Any] = None,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
    base_url: str = ApiEndpoints.BASE_URL,
) -> Any:
    """Perform one API request and decode its JSON body.

    Args:
        http: Session to send the request on.
        method: HTTP method.
        path: API path below ``base_url``.
        headers: Extra request headers (authorization, API key).
        payload: JSON body, if any.
        params: Query string parameters.
        timeout: Total timeout in seconds, None for the session default.
        base_url: API root.

    Returns:
        The decoded JSON document, or None for an empty body.

    Raises:
        AuthFailureError: The API answered 401 or 403.
        RemoteApiError: Any other HTTP error or a connection failure.
        NetworkTimeoutError: The request exceeded its timeout.
        UnexpectedShapeError: The body is not valid JSON.
    """
    url = f"{base_url}{path}"
    kwargs: Dict[str, Any] = {}
    if timeout is not None:
        kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)
    effective_timeout = timeout if timeout is not None else TimeoutDefaults.CLIENT

    start = time.monotonic()
    status: Optional[int] = None
    success = False
    try:
        async with http.request(
            method, url, json=payload, params=params, headers=headers, **kwargs
        ) as response:
            status = response.status
            body = await response.text()

            if status in (401, 403):
                raise AuthFailureError(f"{method} {path}", status, body[:200] or None)
            if status >= 400:
                raise RemoteApiError(method, path, status, body[:200] or None)

            success = True
            if not body or not body.strip():
                return None
            try:
                return json.loads(body)
            except ValueError as e:
                success = False
                raise UnexpectedShapeError(path, details=str(e)) from e

    except asyncio.TimeoutError as e:
        raise NetworkTimeoutError(method, path, effective_timeout) from e
    except aiohttp.ClientError as e:
        raise RemoteApiError(method, path, status, str(e) or type(e).__name__) from e
    finally:
        log_api_call(
            logger,
            method,
            path,
            success,
            (time.monotonic() - start) * 1000,
            status=status,
        )
