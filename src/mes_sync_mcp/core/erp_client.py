"""
ERP schedule client for MES Sync MCP.

Logs in to the ERP web application with a cookie session and reads the
work-center schedule for a workday and shift. The session cookies live in the
httpx client's cookie jar for the lifetime of the client.
"""

import asyncio
import logging
from typing import Any

import httpx

from ..config import ErpSettings
from .errors import ConfigurationError, RemoteFetchError, RemoteTimeoutError

logger = logging.getLogger(__name__)

XSRF_HEADER = "x-xsrf-token"


class ErpClient:
    """Async HTTP client for the ERP work-center schedule.

    Handles:
    - XSRF handshake and form login on first use
    - One re-login when the server reports the session as expired (401/403)
    - Retry with exponential backoff on transport failures
    """

    def __init__(self, settings: ErpSettings):
        """Initialize ERP client.

        Args:
            settings: ERP base URL, credentials and timeouts.
        """
        self.settings = settings
        self.base_url = settings.base_url
        self.timeout = settings.timeout
        self.max_retries = settings.max_retries
        self.retry_delay = settings.retry_delay
        self.retry_backoff = settings.retry_backoff

        self._client: httpx.AsyncClient | None = None
        self._xsrf_token = ""
        self._authenticated = False

    @property
    def is_configured(self) -> bool:
        """Check if client has a URL and a user to log in with."""
        return self.settings.is_configured

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if not self.is_configured:
            raise ConfigurationError("ERP client not configured (ERP_BASE_URL, ERP_USER_ID)")
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={"Accept": "application/json"},
            )
            self._authenticated = False
        return self._client

    async def close(self) -> None:
        """Close HTTP client and drop the session."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
        self._authenticated = False

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying transport failures.

        Raises:
            RemoteTimeoutError: Every attempt timed out.
            RemoteFetchError: Connection failure after all retries.
        """
        client = await self._get_client()
        last_error: RemoteFetchError | None = None
        delay = self.retry_delay

        for attempt in range(self.max_retries + 1):
            try:
                return await client.request(method, url, **kwargs)
            except httpx.TimeoutException as e:
                last_error = RemoteTimeoutError(f"ERP request timeout: {e}")
                logger.warning(
                    f"ERP request timeout (attempt {attempt + 1}/{self.max_retries + 1})"
                )
            except httpx.HTTPError as e:
                last_error = RemoteFetchError(f"ERP connection error: {e}")
                logger.warning(
                    f"ERP connection error (attempt {attempt + 1}/{self.max_retries + 1}): {e}"
                )

            if attempt < self.max_retries:
                await asyncio.sleep(delay)
                delay *= self.retry_backoff

        if last_error:
            raise last_error
        raise RemoteFetchError("ERP request failed after all retries")

    async def login(self) -> None:
        """Authenticate against the ERP and keep the session cookies.

        Raises:
            RemoteFetchError: Login was rejected.
        """
        logger.info("Authenticating with ERP...")
        handshake = await self._send("GET", "")
        self._xsrf_token = handshake.headers.get(XSRF_HEADER, "")
        if not self._xsrf_token:
            logger.warning("XSRF token not found during ERP handshake")

        response = await self._send(
            "POST",
            self.settings.login_path,
            json={"UserId": self.settings.user_id, "Password": self.settings.password},
            headers={
                "Content-Type": "application/json",
                "RequestVerificationToken": self._xsrf_token,
            },
        )
        if response.status_code != 200:
            self._authenticated = False
            logger.error(f"ERP login failed with status {response.status_code}")
            raise RemoteFetchError(
                "Failed to authenticate with ERP",
                status_code=response.status_code,
                raw_response=response.text,
            )

        self._authenticated = True
        logger.info("ERP login succeeded")

    async def fetch_schedule(
        self, date: str, shift_code: str | None = None
    ) -> list[dict[str, Any]]:
        """Fetch the work-center schedule rows for a workday.

        Args:
            date: Workday in ``YYYY-MM-DD`` form.
            shift_code: ERP shift code (``D``, ``G`` or ``E``) to filter on.

        Returns:
            Raw schedule rows as returned by the ERP.

        Raises:
            RemoteTimeoutError: The ERP did not answer in time.
            RemoteFetchError: Login or schedule read failed, or the payload
                was not a list.
        """
        params = {"workdayCode": date}
        if shift_code:
            params["ShiftCode"] = shift_code

        if not self._authenticated:
            await self.login()

        response = await self._send("GET", self.settings.schedule_path, params=params)

        if response.status_code in (401, 403):
            logger.info("ERP session expired, re-authenticating...")
            await self.login()
            response = await self._send("GET", self.settings.schedule_path, params=params)

        if response.status_code != 200:
            logger.error(f"ERP schedule fetch failed with status {response.status_code}")
            raise RemoteFetchError(
                f"Failed to fetch schedule: HTTP {response.status_code}",
                status_code=response.status_code,
                raw_response=response.text,
            )

        try:
            rows = response.json()
        except ValueError as e:
            raise RemoteFetchError(
                "ERP schedule response is not JSON", raw_response=response.text
            ) from e

        if not isinstance(rows, list):
            raise RemoteFetchError("Invalid ERP data: expected a list of schedule rows")

        logger.info(f"Fetched {len(rows)} ERP schedule row(s) for {date} shift={shift_code}")
        return rows

    async def refresh_session(self) -> dict[str, Any]:
        """Keep the ERP session alive by touching the base URL.

        Returns:
            ``{"success": True}`` or ``{"success": False, "error": ...}``.
        """
        if not self._authenticated:
            return {"success": False, "error": "No session"}

        client = await self._get_client()
        try:
            response = await client.get("", timeout=self.settings.heartbeat_timeout)
        except httpx.HTTPError as e:
            logger.warning(f"ERP heartbeat network error: {e}")
            return {"success": False, "error": "Heartbeat network error"}

        if response.status_code != 200:
            logger.warning(f"ERP heartbeat returned status {response.status_code}")
            self._authenticated = False
            return {"success": False, "error": "Heartbeat failed"}
        return {"success": True}
