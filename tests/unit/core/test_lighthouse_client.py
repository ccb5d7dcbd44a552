"""Tests for Lighthouse API client module."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from mes_sync_mcp.config import LighthouseSettings
from mes_sync_mcp.core.errors import (
    ConfigurationError,
    RemoteFetchError,
    RemoteMutationError,
    RemoteTimeoutError,
)
from mes_sync_mcp.core.lighthouse_client import LighthouseClient, extract_error_message


def _response(status_code: int = 200, body: Any = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    response.text = str(body)
    return response


class TestLighthouseClientConfiguration:
    """Test LighthouseClient initialization and configuration."""

    def test_init_from_settings(self, lighthouse_settings: LighthouseSettings) -> None:
        client = LighthouseClient(lighthouse_settings)

        assert client.base_url == "https://lighthouse.test/api"
        assert client.cluster_id == "cluster-1"
        assert client.application_id == "app-1"
        assert client.device_root == "cluster-1/device/app-1"
        assert client.is_configured is True

    def test_is_configured_false_without_cluster(self) -> None:
        client = LighthouseClient(LighthouseSettings(server_url="https://x", application_id="a"))
        assert client.is_configured is False

    @pytest.mark.asyncio
    async def test_unconfigured_client_raises(self) -> None:
        client = LighthouseClient(LighthouseSettings())

        with pytest.raises(ConfigurationError):
            await client.list_devices()

    def test_signature_headers_are_fresh(self) -> None:
        first = LighthouseClient._signature_headers()
        second = LighthouseClient._signature_headers()

        assert first["X-Timestamp"].isdigit()
        assert len(first["X-Nonce"]) == 32
        assert first["X-Nonce"] != second["X-Nonce"]


class TestExtractErrorMessage:
    """Test error message extraction from response bodies."""

    def test_message_field(self) -> None:
        assert extract_error_message({"message": "Group not found"}) == "Group not found"

    def test_nested_error_object(self) -> None:
        assert extract_error_message({"error": {"message": "Bad range"}}) == "Bad range"

    def test_errors_list(self) -> None:
        body = {"errors": [{"message": "deviceId is required"}]}
        assert extract_error_message(body) == "deviceId is required"

    def test_plain_text(self) -> None:
        assert extract_error_message("  Gateway timeout ") == "Gateway timeout"

    def test_nothing_found(self) -> None:
        assert extract_error_message({"data": None}) is None
        assert extract_error_message(None) is None


class TestLighthouseClientRequests:
    """Test the request loop: envelopes, retries and error mapping."""

    @pytest.fixture
    def client(self, lighthouse_settings: LighthouseSettings) -> LighthouseClient:
        return LighthouseClient(lighthouse_settings)

    @pytest.mark.asyncio
    async def test_unwraps_data_envelope(self, client: LighthouseClient) -> None:
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(200, {"data": [{"id": "dev-1"}]})

            result = await client._request("POST", "cluster-1/device/app-1/read/many", json={})

        assert result == [{"id": "dev-1"}]
        kwargs = mock_request.call_args.kwargs
        assert "X-Nonce" in kwargs["headers"]
        assert "X-Timestamp" in kwargs["headers"]

    @pytest.mark.asyncio
    async def test_read_retries_then_succeeds(self, client: LighthouseClient) -> None:
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [
                httpx.ConnectError("Connection refused"),
                _response(200, {"data": []}),
            ]

            result = await client.list_devices()

        assert result == []
        assert mock_request.call_count == 2

    @pytest.mark.asyncio
    async def test_read_timeout_after_all_retries(self, client: LighthouseClient) -> None:
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = httpx.TimeoutException("Request timed out")

            with pytest.raises(RemoteTimeoutError):
                await client.read_groups_with_items("a", "b")

        assert mock_request.call_count == client.max_retries + 1

    @pytest.mark.asyncio
    async def test_read_http_error_is_fetch_error(self, client: LighthouseClient) -> None:
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(500, {"message": "Internal error"})

            with pytest.raises(RemoteFetchError) as exc_info:
                await client.list_devices()

        assert exc_info.value.status_code == 500
        assert "Internal error" in str(exc_info.value)
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_mutation_is_never_retried(self, client: LighthouseClient) -> None:
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = httpx.ConnectError("Connection reset")

            with pytest.raises(RemoteMutationError) as exc_info:
                await client.apply_batch({"create": []})

        assert exc_info.value.timed_out is False
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_mutation_timeout_is_flagged(self, client: LighthouseClient) -> None:
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = httpx.ReadTimeout("Read timed out")

            with pytest.raises(RemoteMutationError) as exc_info:
                await client.apply_batch({"update": []})

        assert exc_info.value.timed_out is True

    @pytest.mark.asyncio
    async def test_mutation_http_error(self, client: LighthouseClient) -> None:
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(400, {"message": "Overlapping group"})

            with pytest.raises(RemoteMutationError) as exc_info:
                await client.apply_batch({"create": [{"deviceId": "dev-1"}]})

        assert exc_info.value.status_code == 400
        assert "Overlapping group" in str(exc_info.value)


class TestLighthouseClientEndpoints:
    """Test endpoint paths and bodies."""

    @pytest.fixture
    def client(self, lighthouse_settings: LighthouseSettings) -> LighthouseClient:
        return LighthouseClient(lighthouse_settings)

    @pytest.mark.asyncio
    async def test_list_devices(self, client: LighthouseClient) -> None:
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = [{"id": "dev-1", "foreignId": "WC-01"}]

            devices = await client.list_devices()

        assert devices == [{"id": "dev-1", "foreignId": "WC-01"}]
        args, kwargs = mock_request.call_args
        assert args == ("POST", "cluster-1/device/app-1/read/many")
        assert kwargs["json"]["where"] == {"clusterId": "cluster-1"}
        assert kwargs["json"]["select"]["foreignId"] is True

    @pytest.mark.asyncio
    async def test_list_devices_non_list_payload(self, client: LighthouseClient) -> None:
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = None

            assert await client.list_devices() == []

    @pytest.mark.asyncio
    async def test_read_groups_with_items(self, client: LighthouseClient) -> None:
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = [{"id": "grp-1", "Items": []}]

            groups = await client.read_groups_with_items("s", "e", device_id="dev-1")

        assert groups == [{"id": "grp-1", "Items": []}]
        args, kwargs = mock_request.call_args
        assert args == ("GET", "cluster-1/device/app-1/groups/read/many/with-items")
        assert kwargs["params"] == {"rangeStart": "s", "rangeEnd": "e", "deviceId": "dev-1"}

    @pytest.mark.asyncio
    async def test_create_group(self, client: LighthouseClient) -> None:
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            await client.create_group(
                "dev-1", "2026-01-17T02:30:00.000Z", "2026-01-17T14:30:00.000Z", [{"x": 1}]
            )

        args, kwargs = mock_request.call_args
        assert args == ("POST", "cluster-1/device/app-1/state-events/dev-1/groups/create/one")
        assert kwargs["json"]["title"] == "2026-01-17"
        assert kwargs["mutation"] is True

    @pytest.mark.asyncio
    async def test_create_group_requires_items(self, client: LighthouseClient) -> None:
        with pytest.raises(ValueError):
            await client.create_group("dev-1", "s", "e", [])

    @pytest.mark.asyncio
    async def test_update_group_omits_empty_sections(self, client: LighthouseClient) -> None:
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            await client.update_group("grp-1", "dev-1", delete=["item-1"])

        args, kwargs = mock_request.call_args
        assert args == (
            "PATCH",
            "cluster-1/device/app-1/state-events/dev-1/groups/update/one/grp-1",
        )
        assert kwargs["json"] == {"items": {"delete": ["item-1"]}}

    @pytest.mark.asyncio
    async def test_apply_batch(self, client: LighthouseClient) -> None:
        batch = {"create": [{"deviceId": "dev-1"}]}
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            await client.apply_batch(batch)

        mock_request.assert_awaited_once_with(
            "POST", "cluster-1/device/app-1/groups/batch", json=batch, mutation=True
        )
