"""
Local assignment snapshot read from Lighthouse event groups.

Each event item whose metadata names a work order becomes one
LocalAssignment. The snapshot is cached per date until invalidated or
refreshed; the sync service refreshes it on every analysis.
"""

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from .models import LocalAssignment
from .normalizer import DeviceDirectory, coerce_number, coerce_str
from .shifts import local_date_of, local_day_bounds, shift_for_range

logger = logging.getLogger(__name__)


class GroupReader(Protocol):
    async def list_devices(self) -> list[dict[str, Any]]: ...

    async def read_groups_with_items(
        self, range_start: str, range_end: str, device_id: str | None = None
    ) -> list[dict[str, Any]]: ...


def _op_numbers(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [coerce_str(v) for v in value if coerce_str(v)]
    return [coerce_str(value)]


def assignments_from_groups(
    groups: Iterable[dict[str, Any]],
    date: str,
    devices: DeviceDirectory | None = None,
) -> list[LocalAssignment]:
    """Map event groups with items onto local assignments for one local date."""
    assignments: list[LocalAssignment] = []

    for group in groups:
        if not isinstance(group, dict):
            continue
        range_start = group.get("rangeStart") if isinstance(group.get("rangeStart"), str) else None
        range_end = group.get("rangeEnd") if isinstance(group.get("rangeEnd"), str) else None
        if range_start and local_date_of(range_start) != date:
            continue

        shift = shift_for_range(date, range_start or "", range_end or "")
        device_id = coerce_str(group.get("deviceId"))
        machine = devices.name_of(device_id) if devices and device_id else device_id
        group_id = coerce_str(group.get("id"))

        for item in group.get("Items") or []:
            metadata = item.get("metadata") if isinstance(item, dict) else None
            if not isinstance(metadata, dict):
                continue
            work_order = coerce_str(metadata.get("workOrder"))
            if not work_order:
                continue

            op_number = _op_numbers(metadata.get("opNumber"))
            quantity = coerce_number(metadata.get("opBatchQty"))
            operator_code = coerce_str(metadata.get("operatorCode"))
            assignments.append(
                LocalAssignment(
                    work_order=work_order,
                    part_number=coerce_str(metadata.get("partNumber")),
                    process_id=op_number[0] if op_number else "",
                    operator_code=operator_code,
                    operator_name=coerce_str(metadata.get("operatorName")),
                    planned_quantity=quantity,
                    work_center_code=coerce_str(metadata.get("workCenterCode")),
                    shift_code=shift.code,
                    workday_code=date,
                    identity_key=coerce_str(metadata.get("uniqueIdentifier")) or None,
                    imported_from=coerce_str(metadata.get("importedFrom")) or None,
                    lht_group_id=group_id or None,
                    lht_item_id=coerce_str(item.get("id")) or None,
                    lht_device_id=device_id,
                    batch=quantity,
                    code=operator_code,
                    op_number=op_number,
                    date=date,
                    shift=shift.display_name,
                    machine=machine,
                )
            )

    return assignments


class LighthouseAssignmentStore:
    """Reads and caches the planned-output assignments for a local date."""

    def __init__(self, client: GroupReader):
        self.client = client
        self._cache: dict[str, list[LocalAssignment]] = {}

    async def list_assignments(
        self, date: str, devices: DeviceDirectory | None = None, refresh: bool = False
    ) -> list[LocalAssignment]:
        """Return every assignment on the given local date (all origins).

        Args:
            date: Local workday, ``YYYY-MM-DD``.
            devices: Directory used to name machines.
            refresh: Re-read Lighthouse even if the date is cached.
        """
        if not refresh and date in self._cache:
            return list(self._cache[date])

        bounds = local_day_bounds(date)
        groups = await self.client.read_groups_with_items(bounds.start_iso, bounds.end_iso)
        assignments = assignments_from_groups(groups, date, devices)
        logger.info(
            f"Loaded {len(assignments)} assignment(s) from {len(groups)} group(s) for {date}"
        )
        self._cache[date] = assignments
        return list(assignments)

    def invalidate(self, date: str | None = None) -> None:
        """Drop cached snapshots so the next read refetches."""
        if date is None:
            self._cache.clear()
        else:
            self._cache.pop(date, None)
