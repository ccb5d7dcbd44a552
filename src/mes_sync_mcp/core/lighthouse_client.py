"""
Lighthouse API client for MES Sync MCP.

Provides an async HTTP client for the Lighthouse device platform: the device
directory, event-group reads, and event-group mutations (including the single
combined batch call used by the sync executor).
"""

import asyncio
import logging
import secrets
import time
from typing import Any

import httpx

from ..config import LighthouseSettings
from .errors import (
    ConfigurationError,
    RemoteError,
    RemoteFetchError,
    RemoteMutationError,
    RemoteTimeoutError,
)

logger = logging.getLogger(__name__)

DEVICE_SELECT_FIELDS = (
    "id",
    "deviceName",
    "serialNumber",
    "foreignId",
    "itemId",
    "connectionStatus",
    "deviceStatus",
    "createdAt",
    "updatedAt",
)


def extract_error_message(response_data: Any) -> str | None:
    """Pull a human-readable error message out of a Lighthouse response body.

    Args:
        response_data: Parsed JSON body (or raw text wrapper).

    Returns:
        The first message found, or None.
    """
    if isinstance(response_data, str):
        return response_data.strip() or None
    if not isinstance(response_data, dict):
        return None

    for key in ("message", "error", "errorMessage", "detail"):
        value = response_data.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, dict) and value.get("message"):
            return str(value["message"])

    errors = response_data.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict):
            return str(first.get("message", first))
        return str(first)

    return None


class LighthouseClient:
    """Async HTTP client for the Lighthouse device/event API.

    Handles:
    - Application credentials and per-request timestamp/nonce headers
    - Retry with exponential backoff for read calls only
    - Mapping of transport and HTTP failures onto the remote error taxonomy
    """

    def __init__(self, settings: LighthouseSettings):
        """Initialize Lighthouse client.

        Args:
            settings: Connection settings (URL, cluster, application, timeouts).
        """
        self.settings = settings
        self.base_url = settings.server_url.rstrip("/")
        self.cluster_id = settings.cluster_id
        self.application_id = settings.application_id
        self.timeout = settings.timeout
        self.max_retries = settings.max_retries
        self.retry_delay = settings.retry_delay
        self.retry_backoff = settings.retry_backoff

        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        """Check if client has enough settings to make calls."""
        return self.settings.is_configured

    @property
    def device_root(self) -> str:
        """Path prefix for device endpoints of this cluster/application."""
        return f"{self.cluster_id}/device/{self.application_id}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if not self.is_configured:
            raise ConfigurationError(
                "Lighthouse client not configured (LH_SERVER_URL, LHT_CLUSTER_ID, APPLICATION_ID)"
            )
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url + "/",
                timeout=httpx.Timeout(self.timeout),
                verify=self.settings.verify_ssl,
                headers={
                    "Content-Type": "application/json",
                    "x-application-code": self.settings.application_code,
                    "x-application-secret-key": self.settings.secret_key,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _signature_headers() -> dict[str, str]:
        return {
            "X-Timestamp": str(int(time.time() * 1000)),
            "X-Nonce": secrets.token_hex(16),
        }

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        mutation: bool = False,
    ) -> Any:
        """Make an HTTP request and unwrap the ``data`` envelope.

        Read requests retry transport failures; mutations are sent exactly once.

        Args:
            method: HTTP method.
            endpoint: Path relative to the Lighthouse base URL.
            json: Request body.
            params: Query parameters.
            mutation: Whether the call changes remote state.

        Returns:
            The ``data`` member of the response body.

        Raises:
            RemoteMutationError: Mutation failed (any cause).
            RemoteTimeoutError: Read timed out on every attempt.
            RemoteFetchError: Read failed.
        """
        client = await self._get_client()
        attempts = 1 if mutation else self.max_retries + 1
        delay = self.retry_delay
        last_error: RemoteError | None = None

        for attempt in range(attempts):
            try:
                response = await client.request(
                    method,
                    endpoint,
                    json=json,
                    params=params,
                    headers=self._signature_headers(),
                )
            except httpx.TimeoutException as e:
                if mutation:
                    raise RemoteMutationError(
                        f"Lighthouse mutation timed out: {e}", timed_out=True
                    ) from e
                last_error = RemoteTimeoutError(f"Lighthouse request timeout: {e}")
                logger.warning(
                    f"Lighthouse request timeout on {endpoint} "
                    f"(attempt {attempt + 1}/{attempts})"
                )
            except httpx.HTTPError as e:
                if mutation:
                    raise RemoteMutationError(f"Lighthouse mutation failed: {e}") from e
                last_error = RemoteFetchError(f"Lighthouse connection error: {e}")
                logger.warning(
                    f"Lighthouse connection error on {endpoint} "
                    f"(attempt {attempt + 1}/{attempts}): {e}"
                )
            else:
                body = self._parse_body(response)
                if response.status_code >= 400:
                    message = extract_error_message(body) or f"HTTP {response.status_code}"
                    error_class = RemoteMutationError if mutation else RemoteFetchError
                    logger.error(
                        f"Lighthouse {method} {endpoint} failed "
                        f"({response.status_code}): {message}"
                    )
                    raise error_class(
                        message,
                        status_code=response.status_code,
                        raw_response=response.text,
                    )
                if isinstance(body, dict):
                    return body.get("data")
                return body

            if attempt < attempts - 1:
                await asyncio.sleep(delay)
                delay *= self.retry_backoff

        if last_error:
            raise last_error
        raise RemoteFetchError("Lighthouse request failed after all retries")

    # === Reads ===

    async def list_devices(self) -> list[dict[str, Any]]:
        """List the devices of the configured cluster.

        Returns:
            Device summaries including ``id``, ``deviceName`` and ``foreignId``.
        """
        data = await self._request(
            "POST",
            f"{self.device_root}/read/many",
            json={
                "where": {"clusterId": self.cluster_id},
                "select": {field: True for field in DEVICE_SELECT_FIELDS},
            },
        )
        return data if isinstance(data, list) else []

    async def read_groups_with_items(
        self,
        range_start: str,
        range_end: str,
        device_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Read event groups (with their items) across the cluster.

        Args:
            range_start: Inclusive UTC ISO range start.
            range_end: UTC ISO range end.
            device_id: Restrict to one device.

        Returns:
            Event groups, each with an ``Items`` list.
        """
        params: dict[str, Any] = {"rangeStart": range_start, "rangeEnd": range_end}
        if device_id:
            params["deviceId"] = device_id
        data = await self._request(
            "GET", f"{self.device_root}/groups/read/many/with-items", params=params
        )
        return data if isinstance(data, list) else []

    # === Mutations ===

    async def create_group(
        self,
        device_id: str,
        range_start: str,
        range_end: str,
        items: list[dict[str, Any]],
        title: str | None = None,
    ) -> Any:
        """Create an event group and its items in one call.

        Single-group form of a batch ``create`` operation. The sync executor
        always goes through ``apply_batch`` and never calls this.

        Args:
            device_id: Owning device.
            range_start: Group range start (UTC ISO).
            range_end: Group range end (UTC ISO).
            items: Item bodies to create inside the group.
            title: Group title. Defaults to the range start date.

        Returns:
            The created group.
        """
        if not items:
            raise ValueError("items is required and cannot be empty")
        body = {
            "rangeStart": range_start,
            "rangeEnd": range_end,
            "title": title or range_start.split("T")[0],
            "items": items,
        }
        return await self._request(
            "POST",
            f"{self.device_root}/state-events/{device_id}/groups/create/one",
            json=body,
            mutation=True,
        )

    async def update_group(
        self,
        group_id: str,
        device_id: str,
        create: list[dict[str, Any]] | None = None,
        update: list[dict[str, Any]] | None = None,
        delete: list[str] | None = None,
    ) -> Any:
        """Create, update and delete items inside an existing event group.

        Single-group form of a batch ``update`` operation. The sync executor
        always goes through ``apply_batch`` and never calls this.

        Args:
            group_id: Target group.
            device_id: Device owning the group.
            create: Item bodies to add.
            update: Item bodies (with ``id``) to patch.
            delete: Item ids to remove.

        Returns:
            The updated group.
        """
        items = {
            key: value
            for key, value in (("create", create), ("update", update), ("delete", delete))
            if value
        }
        return await self._request(
            "PATCH",
            f"{self.device_root}/state-events/{device_id}/groups/update/one/{group_id}",
            json={"items": items},
            mutation=True,
        )

    async def apply_batch(self, batch: dict[str, Any]) -> Any:
        """Submit a combined ``{create, update, delete}`` group batch in one call.

        Each operation carries its own ``deviceId``. The batch is applied or
        rejected as a whole.

        Args:
            batch: Combined mutation body.

        Returns:
            Per-operation results reported by Lighthouse.
        """
        return await self._request(
            "POST", f"{self.device_root}/groups/batch", json=batch, mutation=True
        )
