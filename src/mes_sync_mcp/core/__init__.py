"""
Core infrastructure modules for MES Sync MCP.

- errors: Remote failure taxonomy
- erp_client: ERP work-center schedule HTTP client
- lighthouse_client: Lighthouse device/event-group HTTP client
- audit: Tool call and sync run logging
"""

from .audit import AuditLogger, audit_tool_call, get_audit_logger
from .erp_client import ErpClient
from .errors import (
    ConfigurationError,
    RemoteError,
    RemoteFetchError,
    RemoteMutationError,
    RemoteTimeoutError,
)
from .lighthouse_client import LighthouseClient

__all__ = [
    "AuditLogger",
    "ConfigurationError",
    "ErpClient",
    "LighthouseClient",
    "RemoteError",
    "RemoteFetchError",
    "RemoteMutationError",
    "RemoteTimeoutError",
    "audit_tool_call",
    "get_audit_logger",
]
