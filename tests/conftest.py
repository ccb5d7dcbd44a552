"""Shared test fixtures for MES Sync MCP tests.

This module provides common fixtures for devices, ERP rows, local
assignments and settings used across the sync, client and tool tests.
"""

from collections.abc import Callable, Generator
from typing import Any

import pytest

from mes_sync_mcp.config import ErpSettings, LighthouseSettings, SyncSettings
from mes_sync_mcp.sync.models import LocalAssignment
from mes_sync_mcp.sync.normalizer import DeviceDirectory

# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def lighthouse_settings() -> LighthouseSettings:
    """Provide Lighthouse settings with fast, retry-free timings."""
    return LighthouseSettings(
        server_url="https://lighthouse.test/api",
        cluster_id="cluster-1",
        application_id="app-1",
        application_code="PSM",
        secret_key="secret",
        timeout=5.0,
        max_retries=2,
        retry_delay=0.0,
        retry_backoff=1.0,
    )


@pytest.fixture
def erp_settings() -> ErpSettings:
    """Provide ERP settings with fast retry timings."""
    return ErpSettings(
        base_url="https://erp.test/",
        user_id="planner",
        password="pw",
        timeout=5.0,
        max_retries=1,
        retry_delay=0.0,
        retry_backoff=1.0,
    )


@pytest.fixture
def sync_settings() -> SyncSettings:
    return SyncSettings()


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
def sample_devices() -> list[dict[str, Any]]:
    """Provide Lighthouse devices; WC-02 maps to two devices on purpose."""
    return [
        {"id": "dev-1", "deviceName": "CNC Lathe 1", "foreignId": "WC-01"},
        {"id": "dev-2", "deviceName": "Press 2", "foreignId": "WC-02"},
        {"id": "dev-3", "deviceName": "Press 3", "foreignId": "WC-02"},
        {"id": "dev-4", "deviceName": "Unmapped"},
    ]


@pytest.fixture
def device_directory(sample_devices: list[dict[str, Any]]) -> DeviceDirectory:
    return DeviceDirectory(sample_devices)


@pytest.fixture
def make_row() -> Callable[..., dict[str, Any]]:
    """Factory for raw ERP schedule rows."""

    def _make(**overrides: Any) -> dict[str, Any]:
        row = {
            "WorkdayCode": "2026-01-17",
            "ShiftCode": "D",
            "RouteCardNbr": "WO-100",
            "ProcessID": "10",
            "OperatorCode": "OP1",
            "OperatorName": "Asha",
            "ItemCode": "P-1",
            "QtyPlanned": 100,
            "WorkCenterCode": "WC-01",
        }
        row.update(overrides)
        return row

    return _make


@pytest.fixture
def make_assignment() -> Callable[..., LocalAssignment]:
    """Factory for ERP-origin local assignments matching make_row defaults."""

    def _make(**overrides: Any) -> LocalAssignment:
        values: dict[str, Any] = {
            "work_order": "WO-100",
            "part_number": "P-1",
            "process_id": "10",
            "operator_code": "OP1",
            "operator_name": "Asha",
            "planned_quantity": 100,
            "work_center_code": "WC-01",
            "shift_code": "D",
            "workday_code": "2026-01-17",
            "identity_key": "WC-01-P-1-WO-100",
            "imported_from": "ERP",
            "lht_group_id": "grp-1",
            "lht_item_id": "item-1",
            "lht_device_id": "dev-1",
            "batch": 100,
            "code": "OP1",
            "op_number": ["10"],
            "date": "2026-01-17",
            "shift": "Day Shift (S1)",
            "machine": "CNC Lathe 1",
        }
        values.update(overrides)
        return LocalAssignment(**values)

    return _make


# =============================================================================
# Singleton Reset Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset singleton instances between tests.

    This ensures test isolation by clearing global state.
    """
    import mes_sync_mcp.config as config_module
    import mes_sync_mcp.core.audit as audit_module
    import mes_sync_mcp.tools.sync as sync_tools_module

    # Store originals
    orig_audit = audit_module._audit_logger
    orig_config = config_module._config
    orig_service = sync_tools_module._service

    # Reset to None
    audit_module._audit_logger = None
    config_module._config = None
    sync_tools_module._service = None

    yield

    # Restore originals (in case tests depend on them persisting)
    audit_module._audit_logger = orig_audit
    config_module._config = orig_config
    sync_tools_module._service = orig_service
