"""
Formatting helpers shared by the MCP tools.
"""

from collections.abc import Sequence
from typing import Any

from ..core.errors import RemoteError, RemoteMutationError
from ..sync.models import ChangeItem


def format_value(value: Any) -> str:
    """Format a value for a table cell."""
    if value is None:
        return ""
    if isinstance(value, float):
        if value == int(value):
            return str(int(value))
        return f"{value:.2f}"
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(v) for v in value)
    return str(value)


def truncate_value(value: Any, max_length: int = 100) -> str:
    s = format_value(value)
    if len(s) > max_length:
        return s[: max_length - 3] + "..."
    return s


def format_table(
    rows: Sequence[dict[str, Any]],
    columns: Sequence[str],
    max_column_width: int = 50,
) -> str:
    """Render rows as a fixed-width text table.

    Args:
        rows: Row dictionaries.
        columns: Keys to show, in order.
        max_column_width: Width cap per column.

    Returns:
        Table text, or a placeholder when there are no rows.
    """
    if not rows:
        return "No results found."

    widths = {}
    for col in columns:
        values = [truncate_value(row.get(col), max_column_width) for row in rows]
        widths[col] = min(max([len(col), *(len(v) for v in values)]), max_column_width)

    header = " | ".join(col.ljust(widths[col]) for col in columns)
    separator = "-+-".join("-" * widths[col] for col in columns)
    lines = [
        " | ".join(
            truncate_value(row.get(col), max_column_width).ljust(widths[col]) for col in columns
        )
        for row in rows
    ]
    return "\n".join([header, separator, *lines])


def format_change_table(items: Sequence[ChangeItem]) -> str:
    """Render change items with their selection id, summary and diff."""
    rows = [
        {
            "type": item.type.value,
            "id": item.id,
            "title": item.title,
            "detail": item.subtitle,
            "diff": item.diff or "",
        }
        for item in items
    ]
    return format_table(rows, ["type", "id", "title", "detail", "diff"], max_column_width=60)


def format_error(error: Exception) -> str:
    """Format an exception for an MCP response."""
    if isinstance(error, RemoteMutationError):
        lines = [f"Sync failed: {error}", "No changes were applied."]
        if error.timed_out:
            lines.append("The request timed out; check Lighthouse before retrying.")
    else:
        lines = [f"Error: {error}"]

    if isinstance(error, RemoteError) and error.status_code:
        lines.append(f"Status: {error.status_code}")
    return "\n".join(lines)


def format_count(count: int) -> str:
    return f"{count:,}"
