"""Discovery of the charge points owned by an account.

Used when pairing: a host lists the owned devices of one type to pick the
id it then configures.
"""

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .auth import AuthSession
from .client import RemoteChargerClient
from .config import AccountConfig
from .constants import ApiEndpoints

logger = logging.getLogger(__name__)


async def list_devices(
    client: RemoteChargerClient, device_type: Optional[str] = None
) -> List[Dict[str, Any]]:
    """List owned charge points, optionally only those of ``device_type``.

    Returns:
        One ``{"name", "id", "type"}`` entry per device. The type comparison
        ignores case.
    """
    wanted = device_type.upper() if device_type else None
    devices = []
    for entry in await client.get_owned_devices():
        if not isinstance(entry, dict):
            continue
        entry_type = str(entry.get("type") or "")
        if wanted is not None and entry_type.upper() != wanted:
            continue
        devices.append(
            {
                "name": entry.get("name") or entry.get("id"),
                "id": entry.get("id"),
                "type": entry_type,
            }
        )
    logger.info(
        f"Found {len(devices)} owned charge point(s)"
        + (f" of type {wanted}" if wanted else "")
    )
    return devices


async def discover(
    http: aiohttp.ClientSession,
    account: AccountConfig,
    device_type: Optional[str] = None,
    base_url: str = ApiEndpoints.BASE_URL,
) -> List[Dict[str, Any]]:
    """Log in with a throwaway session and list the owned charge points."""
    auth = AuthSession(http, account, base_url)
    await auth.login()
    return await list_devices(RemoteChargerClient(http, auth, base_url), device_type)
