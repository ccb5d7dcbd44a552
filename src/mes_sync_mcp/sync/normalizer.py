"""
ERP row normalization.

Turns raw ERP schedule rows into CanonicalAssignment records for one
requested workday and shift. Rows that do not qualify are rejected with a
reason; a rejection never aborts the rest of the batch.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .models import CanonicalAssignment, RawErpRow
from .shifts import DAY, NIGHT, Shift, get_shift

logger = logging.getLogger(__name__)


# Rejection reasons
WRONG_DATE = "wrong_date"
WRONG_SHIFT = "wrong_shift"
MISSING_WORK_ORDER = "missing_work_order"
UNKNOWN_WORK_CENTER = "unknown_work_center"
AMBIGUOUS_WORK_CENTER = "ambiguous_work_center"


@dataclass(frozen=True)
class RowRejection:
    index: int
    reason: str
    detail: str = ""


class DeviceDirectory:
    """Lighthouse devices indexed by their ERP work-center foreign id."""

    def __init__(self, devices: Iterable[dict[str, Any]]):
        self.devices = list(devices)
        self._by_foreign_id: dict[str, list[dict[str, Any]]] = {}
        for device in self.devices:
            foreign_id = device.get("foreignId")
            if foreign_id in (None, ""):
                continue
            self._by_foreign_id.setdefault(str(foreign_id), []).append(device)

    def __len__(self) -> int:
        return len(self.devices)

    def matches(self, work_center_code: str) -> list[dict[str, Any]]:
        return self._by_foreign_id.get(work_center_code, [])

    def resolve(self, work_center_code: str) -> dict[str, Any] | None:
        """Return the single device for a work center, or None if absent or ambiguous."""
        found = self.matches(work_center_code)
        return found[0] if len(found) == 1 else None

    def name_of(self, device_id: str) -> str:
        for device in self.devices:
            if device.get("id") == device_id:
                return str(device.get("deviceName") or device_id)
        return device_id


def coerce_str(value: Any) -> str:
    """Stringify a field without trimming; identity keys depend on the exact text."""
    if value is None or value == "" or value is False:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def coerce_number(value: Any) -> int | float:
    """Coerce to a number, falling back to 0 when missing or unparseable."""
    if value is None or value == "" or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number) if number.is_integer() else number


def _shift_accepts(requested: Shift, row_code: str, index: int) -> bool:
    if requested is DAY:
        return row_code == DAY.code
    if requested is NIGHT:
        return row_code == NIGHT.code
    if row_code != requested.code:
        # ERP tags general-shift work inconsistently, so keep the row.
        logger.warning(
            f"Row {index}: shift code {row_code!r} accepted for {requested.name} shift"
        )
    return True


def check_row(
    row: RawErpRow,
    requested_date: str,
    requested_shift: Shift,
    devices: DeviceDirectory,
    index: int = 0,
) -> CanonicalAssignment | RowRejection:
    """Apply the acceptance rules to one row, in order."""
    workday = coerce_str(row.workday_code)
    if workday != requested_date:
        return RowRejection(index, WRONG_DATE, f"workday {workday!r}")

    row_shift = coerce_str(row.shift_code)
    if not _shift_accepts(requested_shift, row_shift, index):
        return RowRejection(index, WRONG_SHIFT, f"shift {row_shift!r}")

    work_order = coerce_str(row.route_card_nbr)
    if not work_order:
        return RowRejection(index, MISSING_WORK_ORDER)

    work_center = coerce_str(row.work_center_code)
    matches = devices.matches(work_center)
    if not matches:
        return RowRejection(index, UNKNOWN_WORK_CENTER, f"work center {work_center!r}")
    if len(matches) > 1:
        return RowRejection(
            index,
            AMBIGUOUS_WORK_CENTER,
            f"work center {work_center!r} maps to {len(matches)} devices",
        )
    device = matches[0]

    quantity = coerce_number(row.qty_planned)
    return CanonicalAssignment(
        work_order=work_order,
        process_id=coerce_str(row.process_id),
        operator_code=coerce_str(row.operator_code),
        operator_name=coerce_str(row.operator_name),
        part_number=coerce_str(row.item_code),
        planned_quantity=max(quantity, 0),
        work_center_code=work_center,
        shift_code=requested_shift.code,
        workday_code=workday,
        device_id=str(device.get("id", "")),
        device_name=str(device.get("deviceName") or device.get("id", "")),
    )


def normalize(
    raw_row: dict[str, Any] | RawErpRow,
    requested_date: str,
    requested_shift: str | Shift,
    device_directory: DeviceDirectory,
) -> CanonicalAssignment | None:
    """Normalize one ERP row, returning None when it is rejected."""
    shift = requested_shift if isinstance(requested_shift, Shift) else get_shift(requested_shift)
    row = raw_row if isinstance(raw_row, RawErpRow) else RawErpRow.from_mapping(raw_row)
    outcome = check_row(row, requested_date, shift, device_directory)
    if isinstance(outcome, RowRejection):
        logger.debug(f"ERP row rejected: {outcome.reason} {outcome.detail}")
        return None
    return outcome


def normalize_rows(
    raw_rows: Iterable[Any],
    requested_date: str,
    requested_shift: str | Shift,
    device_directory: DeviceDirectory,
) -> tuple[list[CanonicalAssignment], list[RowRejection]]:
    """Normalize a batch of ERP rows.

    Returns:
        Accepted candidates (in row order) and the rejections.
    """
    shift = requested_shift if isinstance(requested_shift, Shift) else get_shift(requested_shift)
    candidates: list[CanonicalAssignment] = []
    rejections: list[RowRejection] = []

    for index, raw in enumerate(raw_rows):
        if not isinstance(raw, dict):
            rejections.append(RowRejection(index, "not_a_record", type(raw).__name__))
            continue
        outcome = check_row(RawErpRow.from_mapping(raw), requested_date, shift, device_directory, index)
        if isinstance(outcome, RowRejection):
            logger.debug(f"ERP row {index} rejected: {outcome.reason} {outcome.detail}")
            rejections.append(outcome)
        else:
            candidates.append(outcome)

    logger.info(
        f"Normalized ERP rows for {requested_date} {shift.name}: "
        f"{len(candidates)} accepted, {len(rejections)} rejected"
    )
    return candidates, rejections
