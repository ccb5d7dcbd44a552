"""
ERP sync tools for MES Sync MCP.

Tools:
- sync_test_connection: Lighthouse and ERP connectivity check
- sync_list_devices: Devices and their ERP work-center ids
- shift_range: UTC range of a shift on a local date
- sync_analyze: Preview ADD/UPDATE/DELETE changes for a date and shift
- sync_execute: Apply the previewed changes (opt-out or opt-in by id)
- erp_heartbeat: Keep the ERP session alive
"""

import logging
from collections import Counter

from mcp.server.fastmcp import FastMCP

from ..config import get_config
from ..core.audit import audit_tool_call, get_audit_logger
from ..core.erp_client import ErpClient
from ..core.errors import ConfigurationError, RemoteError, RemoteMutationError
from ..core.lighthouse_client import LighthouseClient
from ..sync.service import SyncAnalysis, SyncService
from ..sync.shifts import InvalidDateError, get_shift, resolve_shift_range
from .base import format_change_table, format_count, format_error, format_table

logger = logging.getLogger(__name__)

_service: SyncService | None = None


def get_sync_service() -> SyncService:
    """Get the global sync service, building clients from configuration."""
    global _service
    if _service is None:
        config = get_config()
        lighthouse = LighthouseClient(config.lighthouse)
        _service = SyncService(
            erp=ErpClient(config.erp),
            lighthouse=lighthouse,
            settings=config.sync,
        )
    return _service


def reset_sync_service() -> None:
    """Drop the global sync service (used by tests and after reconfiguration)."""
    global _service
    _service = None


def _format_analysis(analysis: SyncAnalysis, change_type: str = "ALL", query: str = "") -> str:
    changes = analysis.changes
    lines = [
        f"# ERP Sync Review: {analysis.date} - {analysis.shift.display_name}",
        "",
        f"**ERP rows**: {format_count(analysis.row_count)} "
        f"({len(analysis.candidates)} accepted, {len(analysis.rejections)} rejected)",
        f"**Local assignments**: {format_count(len(analysis.assignments))}",
        f"**Changes**: +{len(changes.adds)} add, ~{len(changes.updates)} update, "
        f"-{len(changes.deletes)} delete",
        "",
    ]

    if changes.is_empty:
        lines.append("Schedules are in sync. No changes needed.")
    else:
        visible = analysis.selection().visible(change_type, query)
        lines.append("```")
        lines.append(format_change_table(visible) if visible else "No changes match the filter.")
        lines.append("```")
        lines.append("")
        lines.append(
            "All changes are selected by default. Pass ids to `exclude_ids` "
            "(or `only_ids`) of sync_execute to narrow the selection."
        )

    if analysis.rejections:
        reasons = Counter(r.reason for r in analysis.rejections)
        lines.append("")
        lines.append("Rejected ERP rows:")
        for reason, count in reasons.most_common():
            lines.append(f"  - {reason}: {count}")

    return "\n".join(lines)


def register_sync_tools(mcp: FastMCP) -> None:
    """Register ERP sync tools with the MCP server.

    Args:
        mcp: The FastMCP server instance.
    """

    @mcp.tool()
    @audit_tool_call("sync_test_connection")
    async def sync_test_connection() -> str:
        """Check connectivity to Lighthouse and the ERP.

        Returns:
            Connection status for both systems.
        """
        service = get_sync_service()
        lines = ["# Connection Status", ""]

        try:
            devices = await service.lighthouse.list_devices()
            lines.append(f"**Lighthouse**: Connected ({format_count(len(devices))} devices)")
        except ConfigurationError as e:
            lines.append(f"**Lighthouse**: Not configured. {e}")
        except RemoteError as e:
            lines.append(f"**Lighthouse**: Failed. {e}")

        try:
            if not service.erp.is_authenticated:
                await service.erp.login()
            lines.append("**ERP**: Logged in")
        except ConfigurationError as e:
            lines.append(f"**ERP**: Not configured. {e}")
        except RemoteError as e:
            lines.append(f"**ERP**: Failed. {e}")

        return "\n".join(lines)

    @mcp.tool()
    @audit_tool_call("sync_list_devices")
    async def sync_list_devices() -> str:
        """List Lighthouse devices with the ERP work-center code they map to.

        Returns:
            Device table (id, name, foreign id).
        """
        service = get_sync_service()
        try:
            devices = await service.lighthouse.list_devices()
        except (ConfigurationError, RemoteError) as e:
            return format_error(e)
        return "# Devices\n\n```\n" + format_table(
            devices, ["id", "deviceName", "foreignId", "deviceStatus"]
        ) + "\n```"

    @mcp.tool()
    @audit_tool_call("shift_range")
    async def shift_range(date: str, shift: str = "Day") -> str:
        """Show the UTC instants bounding a shift on a local date.

        Args:
            date: Local workday, YYYY-MM-DD.
            shift: Day, General or Night (or D, G, E).

        Returns:
            Start and end as UTC ISO timestamps.
        """
        try:
            resolved = get_shift(shift)
            shift_bounds = resolve_shift_range(date, resolved.code)
        except InvalidDateError as e:
            return format_error(e)
        return (
            f"# {resolved.display_name} on {date}\n\n"
            f"**Start**: {shift_bounds.start_iso}\n"
            f"**End**: {shift_bounds.end_iso}"
        )

    @mcp.tool()
    @audit_tool_call("sync_analyze")
    async def sync_analyze(
        date: str,
        shift: str = "Day",
        change_type: str = "ALL",
        query: str = "",
    ) -> str:
        """Compare the ERP schedule with Lighthouse assignments for a shift.

        Nothing is written. Each change has an id usable with sync_execute.

        Args:
            date: Local workday, YYYY-MM-DD.
            shift: Day, General or Night.
            change_type: Show only ADD, UPDATE or DELETE changes (default ALL).
            query: Case-insensitive filter on work order, part or device.

        Returns:
            Change preview grouped by type, plus rejected-row reasons.
        """
        service = get_sync_service()
        audit = get_audit_logger()
        try:
            analysis = await service.analyze(date, shift)
        except (InvalidDateError, ConfigurationError, RemoteError) as e:
            audit.log_sync_run("analyze", date, shift, {}, success=False, error=str(e))
            return format_error(e)

        audit.log_sync_run(
            "analyze",
            date,
            analysis.shift.name,
            {
                "adds": len(analysis.changes.adds),
                "updates": len(analysis.changes.updates),
                "deletes": len(analysis.changes.deletes),
                "rejected": len(analysis.rejections),
            },
        )
        return _format_analysis(analysis, change_type, query)

    @mcp.tool()
    @audit_tool_call("sync_execute")
    async def sync_execute(
        date: str,
        shift: str = "Day",
        exclude_ids: list[str] | None = None,
        only_ids: list[str] | None = None,
    ) -> str:
        """Apply ERP changes for a shift to Lighthouse in one batch.

        The schedule is re-analysed first. All changes are applied unless
        narrowed with only_ids (opt-in) and/or exclude_ids (opt-out).

        Args:
            date: Local workday, YYYY-MM-DD.
            shift: Day, General or Night.
            exclude_ids: Change ids to leave out.
            only_ids: If given, apply only these change ids.

        Returns:
            Counts of created, updated and deleted items, or the failure.
        """
        service = get_sync_service()
        audit = get_audit_logger()
        try:
            analysis = await service.analyze(date, shift)
        except (InvalidDateError, ConfigurationError, RemoteError) as e:
            audit.log_sync_run("execute", date, shift, {}, success=False, error=str(e))
            return format_error(e)

        if analysis.changes.is_empty:
            return f"# ERP Sync: {date} - {analysis.shift.display_name}\n\nNo changes needed."

        selection = analysis.selection()
        if only_ids is not None:
            selection.select_only(only_ids)
        if exclude_ids:
            selection.exclude(exclude_ids)
        if not len(selection):
            return "Nothing selected. No changes were applied."

        try:
            result = await service.execute(analysis, selection)
        except RemoteMutationError as e:
            audit.log_sync_run(
                "execute", date, analysis.shift.name, {}, success=False, error=str(e)
            )
            return format_error(e)

        audit.log_sync_run(
            "execute",
            date,
            analysis.shift.name,
            {"created": result.created, "updated": result.updated, "deleted": result.deleted},
        )
        lines = [
            f"# ERP Sync: {date} - {analysis.shift.display_name}",
            "",
            f"Synced: +{result.created}, ~{result.updated}, -{result.deleted}",
        ]
        if result.skipped:
            lines.append("")
            lines.append(f"Skipped {len(result.skipped)} delete(s) with no owning group:")
            for skipped in result.skipped:
                lines.append(f"  - {skipped}")
        return "\n".join(lines)

    @mcp.tool()
    @audit_tool_call("erp_heartbeat")
    async def erp_heartbeat() -> str:
        """Keep the ERP session alive.

        Returns:
            Heartbeat status.
        """
        service = get_sync_service()
        try:
            status = await service.erp.refresh_session()
        except ConfigurationError as e:
            return format_error(e)
        if status.get("success"):
            return "ERP session is alive."
        return f"ERP heartbeat failed: {status.get('error', 'unknown error')}"
