"""
MCP Tools for ERP-to-Lighthouse schedule sync.

- sync: Connection checks, shift ranges, change analysis and execution
"""

from .sync import register_sync_tools

__all__ = [
    "register_sync_tools",
]
