"""AdsPower local API client.

AdsPower runs a local HTTP API that manages anti-detect browser profiles.
Every response has the shape {"code": int, "msg": str, "data": ...}; a
non-zero code is an error.

Environment variables:
    ADSPOWER_BASE_URL: Local API (default: http://local.adspower.net:50325)
    ADSPOWER_GROUP_ID: Group used for listing and creating profiles
    HIDE_CHROME: "1" to start profile browsers headless

Usage:
    async with AdsPowerClient() as client:
        profile = await client.get_or_create_profile("TripAdvisor_main")
        ws_endpoint, debug_port = await client.start_browser(profile.user_id)
        ...
        await client.stop_browser(profile.user_id)
"""

import os
import time
from typing import Any, List, NamedTuple, Optional

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict


DEFAULT_BASE_URL = "http://local.adspower.net:50325"
DEFAULT_GROUP_ID = "3760701"
DEFAULT_DEBUG_PORT = "9222"
PROFILE_NAME_PREFIX = "TripAdvisor_"


class AdsPowerError(RuntimeError):
    """AdsPower API returned a non-zero code or an unusable payload."""


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str
    name: str = ""
    serial_number: Optional[str] = None
    group_id: Optional[str] = None


class BrowserEndpoint(NamedTuple):
    ws_endpoint: str
    debug_port: str


class AdsPowerClient:
    """Async client for the AdsPower local API.

    Args:
        base_url: API root (default: ADSPOWER_BASE_URL env var)
        group_id: Profile group (default: ADSPOWER_GROUP_ID env var)
        headless: Start browsers headless (default: HIDE_CHROME env var)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        group_id: Optional[str] = None,
        headless: Optional[bool] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or os.getenv("ADSPOWER_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.group_id = group_id or os.getenv("ADSPOWER_GROUP_ID") or DEFAULT_GROUP_ID
        if headless is None:
            headless = os.getenv("HIDE_CHROME", "0") == "1"
        self.headless = headless
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return the "data" field of a successful response."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        resp = await self._client.request(method, path, **kwargs)
        if resp.status_code != 200:
            logger.warning(f"AdsPower request failed: {resp.status_code} - {resp.text[:200]}")
            resp.raise_for_status()

        body = resp.json()
        if body.get("code") != 0:
            msg = body.get("msg") or f"AdsPower error on {path}"
            raise AdsPowerError(msg)
        return body.get("data")

    # =========================================================================
    # Groups / profiles
    # =========================================================================

    async def list_groups(self) -> List[dict]:
        data = await self._request("GET", "/api/v1/group/list")
        return (data or {}).get("list", [])

    async def list_profiles(self) -> List[Profile]:
        data = await self._request(
            "GET",
            "/api/v1/user/list",
            params={"group_id": self.group_id, "page_size": 100},
        )
        return [Profile.model_validate(p) for p in (data or {}).get("list", [])]

    async def create_profile(self, name: Optional[str] = None) -> Optional[str]:
        """Create a profile with randomized fingerprint. Returns its user id when reported."""
        profile_name = name or f"{PROFILE_NAME_PREFIX}{int(time.time() * 1000)}"
        data = await self._request(
            "POST",
            "/api/v1/user/create",
            json={
                "name": profile_name,
                "group_id": self.group_id,
                "user_proxy_config": {"proxy_soft": "no_proxy"},
                "fingerprint_config": {
                    "automatic_timezone": 1,
                    "language": ["en-US", "en"],
                    "browser_kernel_config": {"version": "random"},
                },
            },
        )
        logger.info(f"Created AdsPower profile {profile_name}")
        return (data or {}).get("id")

    async def delete_profiles(self, user_ids: List[str]) -> None:
        await self._request("POST", "/api/v1/user/delete", json={"user_ids": user_ids})

    async def get_or_create_profile(self, name: Optional[str] = None) -> Profile:
        """Find a profile by name in the group, creating it if missing."""
        if name:
            for profile in await self.list_profiles():
                if profile.name == name:
                    logger.info(f"Using existing AdsPower profile {name} ({profile.user_id})")
                    return profile

        await self.create_profile(name)

        for profile in await self.list_profiles():
            if name and profile.name == name:
                return profile
            if not name and profile.name.startswith(PROFILE_NAME_PREFIX):
                return profile
        raise AdsPowerError("Failed to find newly created profile")

    # =========================================================================
    # Browsers
    # =========================================================================

    async def start_browser(self, user_id: str) -> BrowserEndpoint:
        data = await self._request(
            "GET",
            "/api/v1/browser/start",
            params={"user_id": user_id, "headless": "1" if self.headless else "0"},
        )
        data = data or {}
        ws_endpoint = (data.get("ws") or {}).get("puppeteer")
        if not ws_endpoint:
            raise AdsPowerError("No WebSocket endpoint returned")

        debug_port = str(data.get("debug_port") or DEFAULT_DEBUG_PORT)
        logger.info(f"AdsPower browser started for {user_id} (debug port {debug_port})")
        return BrowserEndpoint(ws_endpoint=ws_endpoint, debug_port=debug_port)

    async def stop_browser(self, user_id: str) -> None:
        await self._request("GET", "/api/v1/browser/stop", params={"user_id": user_id})
        logger.info(f"AdsPower browser stopped for {user_id}")

    async def browser_status(self, user_id: str) -> dict:
        data = await self._request("GET", "/api/v1/browser/active", params={"user_id": user_id})
        return data or {}
