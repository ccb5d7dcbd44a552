"""
Audit logging for MES Sync MCP.

Records every tool invocation and every sync analysis/execution so that
changes pushed to Lighthouse can be traced back to an operator action.
"""

import functools
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = {"password", "secret", "token", "key", "credential"}


class AuditLogger:
    """Appends audit entries to a JSON-lines file."""

    def __init__(self, log_dir: Path | None = None):
        """Initialize the audit logger.

        Args:
            log_dir: Directory for audit logs. Defaults to project logs/.
        """
        if log_dir is None:
            project_root = Path(__file__).parent.parent.parent.parent
            log_dir = project_root / "logs"

        self.log_dir = log_dir
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / "audit.jsonl"

    def log_operation(
        self,
        tool: str,
        params: dict[str, Any],
        result_summary: str | None = None,
        success: bool = True,
        error: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log a tool invocation.

        Args:
            tool: Name of the tool invoked.
            params: Parameters passed to the tool.
            result_summary: Brief summary of the result.
            success: Whether the call succeeded.
            error: Error message if it failed.
            duration_ms: Duration in milliseconds.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": "tool_call",
            "tool": tool,
            "params": self._sanitize_params(params),
            "success": success,
        }
        if result_summary:
            entry["result_summary"] = result_summary
        if error:
            entry["error"] = error
        if duration_ms is not None:
            entry["duration_ms"] = round(duration_ms, 2)

        self._write_entry(entry)

    def log_sync_run(
        self,
        phase: str,
        date: str,
        shift: str,
        counts: dict[str, int],
        success: bool = True,
        error: str | None = None,
    ) -> None:
        """Log a sync analysis or execution.

        Args:
            phase: ``analyze`` or ``execute``.
            date: Workday that was synced.
            shift: Shift name.
            counts: Change or result counts by kind.
            success: Whether the phase completed.
            error: Error message if it failed.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": f"sync_{phase}",
            "date": date,
            "shift": shift,
            "counts": counts,
            "success": success,
        }
        if error:
            entry["error"] = error
        self._write_entry(entry)

    def _sanitize_params(self, params: dict[str, Any]) -> dict[str, Any]:
        sanitized = {}
        for key, value in params.items():
            if any(s in key.lower() for s in SENSITIVE_KEYS):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, str) and len(value) > 1000:
                sanitized[key] = value[:1000] + "... [truncated]"
            else:
                sanitized[key] = value
        return sanitized

    def _write_entry(self, entry: dict[str, Any]) -> None:
        try:
            with open(self.log_file, "a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit log: {e}")

    def get_recent_entries(self, limit: int = 100) -> list[dict[str, Any]]:
        """Get recent audit entries, newest first.

        Args:
            limit: Maximum number of entries to return.
        """
        if not self.log_file.exists():
            return []

        entries = []
        try:
            with open(self.log_file) as f:
                for line in f:
                    line = line.strip()
                    if line:
                        entries.append(json.loads(line))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read audit log: {e}")
            return []

        return list(reversed(entries[-limit:]))


# Global audit logger instance
_audit_logger: AuditLogger | None = None


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger instance."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def audit_tool_call(tool: str):
    """Decorator that audits an async tool function.

    Args:
        tool: Name recorded for the tool.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            audit = get_audit_logger()
            start_time = time.time()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                audit.log_operation(
                    tool=tool,
                    params=kwargs,
                    success=False,
                    error=str(e),
                    duration_ms=(time.time() - start_time) * 1000,
                )
                raise

            summary = result[:200] if isinstance(result, str) else type(result).__name__
            audit.log_operation(
                tool=tool,
                params=kwargs,
                result_summary=summary,
                success=True,
                duration_ms=(time.time() - start_time) * 1000,
            )
            return result

        return wrapper

    return decorator
