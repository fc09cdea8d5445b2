"""Async client for the Mender management API."""

from __future__ import annotations

import logging
import ssl
from collections import Counter
from typing import Any, AsyncIterator, Mapping, Optional
from urllib.parse import quote

import aiohttp

from . import constants
from .config import CliConfig
from .models import DeploymentRequest, Device

LOGGER = logging.getLogger(__name__)


class MenderApiError(RuntimeError):
    """Raised when the Mender server answers with a non-2xx status."""

    def __init__(self, action: str, status: int, detail: str = "") -> None:
        self.action = action
        self.status = status
        self.detail = detail.strip()
        message = f"{action} failed with status {status}"
        if self.detail:
            message = f"{message}: {self.detail}"
        super().__init__(message)


class AuthenticationError(MenderApiError):
    """Raised when credentials or the API token are rejected or missing."""


class DeviceNotFoundError(MenderApiError):
    """Raised when a device lookup matches nothing."""

    def __init__(self, action: str, detail: str = "") -> None:
        super().__init__(action, 404, detail)


class MenderClient:
    """Thin wrapper over the Mender useradm, inventory and deployments APIs."""

    def __init__(
        self,
        config: CliConfig,
        *,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config
        self._base_url = config.base_url
        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None

    async def __aenter__(self) -> "MenderClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def login(self, email: str, password: str) -> str:
        """Request an API token for ``email``.

        Raises:
            ValueError: If email or password is empty.
            AuthenticationError: If the server rejects the credentials.
        """

        if not email or not email.strip():
            raise ValueError("Email cannot be empty")
        if not password:
            raise ValueError("Password cannot be empty")

        session = await self._ensure_session()
        url = f"{self._base_url}{constants.USERADM_API}/auth/login"
        auth = aiohttp.BasicAuth(email.strip(), password)

        LOGGER.info("Logging in to %s as %s", self._base_url, email.strip())

        async with session.post(url, auth=auth) as response:
            await self._check_response(response, "Login")
            token = (await response.text()).strip()

        if not token:
            raise AuthenticationError("Login", response.status, "empty token in response")
        return token

    async def group_devices(self, group: str) -> list[str]:
        """Return the ids of every device in ``group``."""

        path = f"{constants.INVENTORY_API}/groups/{quote(group, safe='')}/devices"
        device_ids: list[str] = []
        async for item in self._paginate(path, action=f"Listing group '{group}'"):
            device_ids.append(str(item))
        return device_ids

    async def deploy(self, group: str, artifact: str, name: str = "") -> int:
        """Deploy ``artifact`` to every device of ``group``.

        Returns the number of devices the deployment targets.
        """

        if not group or not group.strip():
            raise ValueError("Group cannot be empty")
        if not artifact or not artifact.strip():
            raise ValueError("Artifact cannot be empty")

        group = group.strip()
        artifact = artifact.strip()
        devices = await self.group_devices(group)
        if not devices:
            raise MenderApiError(
                f"Deploying to group '{group}'", 404, "group has no devices"
            )

        request = DeploymentRequest(
            name=name.strip() or artifact,
            artifact_name=artifact,
            devices=devices,
        )

        session = await self._ensure_session()
        url = f"{self._base_url}{constants.DEPLOYMENTS_API}/deployments"
        async with session.post(
            url,
            json=request.to_payload(),
            headers=self._auth_headers(),
        ) as response:
            await self._check_response(response, f"Deploying '{artifact}'")
            location = response.headers.get("Location", "")

        LOGGER.info(
            "Created deployment %r of %s for %d devices %s",
            request.name,
            artifact,
            len(devices),
            location,
        )
        return len(devices)

    async def get_id(self, serial_number: str, *, attribute: Optional[str] = None) -> str:
        """Resolve the Mender device id whose serial-number attribute matches."""

        if not serial_number or not serial_number.strip():
            raise ValueError("Serial number cannot be empty")

        attribute_name = attribute or self.config.inventory.serial_attribute
        serial_number = serial_number.strip()
        action = f"Looking up {attribute_name}={serial_number}"

        session = await self._ensure_session()
        url = f"{self._base_url}{constants.INVENTORY_API}/devices"
        params = {attribute_name: serial_number, "page": "1", "per_page": "2"}
        async with session.get(url, params=params, headers=self._auth_headers()) as response:
            await self._check_response(response, action)
            payload = await self._read_json(response, action, list)

        if not payload:
            raise DeviceNotFoundError(action, "no matching device")
        if len(payload) > 1:
            LOGGER.warning(
                "Several devices have %s=%s, using the first one",
                attribute_name,
                serial_number,
            )
        return self._parse_device(payload[0], action).id

    async def get_info(self, device_id: str) -> dict[str, Any]:
        """Fetch the inventory record of a device."""

        if not device_id or not device_id.strip():
            raise ValueError("Device id cannot be empty")

        device_id = device_id.strip()
        action = f"Fetching device {device_id}"
        session = await self._ensure_session()
        url = f"{self._base_url}{constants.INVENTORY_API}/devices/{quote(device_id, safe='')}"
        async with session.get(url, headers=self._auth_headers()) as response:
            if response.status == 404:
                raise DeviceNotFoundError(action, (await response.text()))
            await self._check_response(response, action)
            payload = await self._read_json(response, action, dict)

        # Validated for its id, returned as-is for display.
        self._parse_device(payload, action)
        return payload

    async def list_devices(self) -> AsyncIterator[Device]:
        """Yield every device known to the inventory service."""

        path = f"{constants.INVENTORY_API}/devices"
        action = "Listing devices"
        async for item in self._paginate(path, action=action):
            yield self._parse_device(item, action)

    async def count_artifacts(self) -> dict[str, int]:
        """Count devices per installed artifact, most common first."""

        attribute_name = self.config.inventory.artifact_attribute
        counts: Counter[str] = Counter()
        async for device in self.list_devices():
            value = device.attribute(attribute_name)
            counts[str(value) if value else constants.UNKNOWN_ARTIFACT] += 1

        LOGGER.info(
            "Counted %d devices across %d artifacts", sum(counts.values()), len(counts)
        )
        return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _paginate(self, path: str, *, action: str) -> AsyncIterator[Any]:
        session = await self._ensure_session()
        url = f"{self._base_url}{path}"
        per_page = self.config.inventory.page_size
        page = 1

        while True:
            params = {"page": str(page), "per_page": str(per_page)}
            LOGGER.debug("GET %s page=%d", url, page)
            async with session.get(
                url, params=params, headers=self._auth_headers()
            ) as response:
                await self._check_response(response, action)
                items = await self._read_json(response, action, list)

            for item in items:
                yield item

            if not items or len(items) < per_page:
                return
            page += 1

    def _auth_headers(self) -> Mapping[str, str]:
        token = self.config.server.token
        if not token:
            raise AuthenticationError(
                "Authenticating", 401, "no API token configured, run login first"
            )
        return {"Authorization": f"Bearer {token}"}

    def _ssl_context(self) -> ssl.SSLContext | bool:
        cert_file = self.config.server.cert_file
        if cert_file is None:
            return True
        return ssl.create_default_context(cafile=str(cert_file))

    async def _read_json(
        self, response: aiohttp.ClientResponse, action: str, expected: type
    ) -> Any:
        try:
            payload = await response.json(content_type=None)
        except ValueError as exc:
            raise MenderApiError(action, response.status, "invalid JSON response") from exc
        if not isinstance(payload, expected):
            raise MenderApiError(
                action, response.status, f"expected a JSON {expected.__name__} in response"
            )
        return payload

    def _parse_device(self, payload: Any, action: str) -> Device:
        try:
            return Device.from_payload(payload)
        except ValueError as exc:
            raise MenderApiError(action, 200, f"invalid device record: {exc}") from exc

    async def _check_response(
        self, response: aiohttp.ClientResponse, action: str
    ) -> None:
        if 200 <= response.status < 300:
            return
        detail = await response.text()
        if response.status == 401:
            raise AuthenticationError(action, response.status, detail)
        raise MenderApiError(action, response.status, detail)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.config.server.timeout_seconds)
            connector = aiohttp.TCPConnector(ssl=self._ssl_context())
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
            self._owns_session = True
        return self._session
