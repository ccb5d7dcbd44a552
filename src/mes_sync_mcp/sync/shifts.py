"""
Shift catalogue and UTC range resolution.

Plant-local time is a fixed UTC+5:30 with no daylight saving, so wall-clock
times are built as if they were UTC and then shifted back by 5.5 hours.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

LOCAL_UTC_OFFSET = timedelta(hours=5, minutes=30)

_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


class InvalidDateError(ValueError):
    """Malformed date or unknown shift passed to the range resolver."""

    pass


@dataclass(frozen=True)
class Shift:
    name: str
    code: str
    display_name: str
    start: tuple[int, int]
    end: tuple[int, int]
    spans_next_day: bool = False


DAY = Shift("Day", "D", "Day Shift (S1)", (8, 0), (20, 0))
GENERAL = Shift("General", "G", "General Shift (S3)", (8, 30), (17, 30))
NIGHT = Shift("Night", "E", "Night Shift (S2)", (20, 0), (8, 0), spans_next_day=True)

SHIFTS = (DAY, GENERAL, NIGHT)
_BY_CODE = {shift.code: shift for shift in SHIFTS}
_BY_NAME = {shift.name.lower(): shift for shift in SHIFTS}


@dataclass(frozen=True)
class ShiftRange:
    start_iso: str
    end_iso: str


def get_shift(value: str) -> Shift:
    """Look up a shift by ERP code (``D``/``G``/``E``) or name (``Day``...).

    Raises:
        InvalidDateError: Unknown shift.
    """
    key = (value or "").strip()
    shift = _BY_CODE.get(key.upper()) or _BY_NAME.get(key.lower())
    if shift is None:
        raise InvalidDateError(f"Unknown shift: {value!r}")
    return shift


def shift_from_display_name(display_name: str) -> Shift | None:
    for shift in SHIFTS:
        if shift.display_name in (display_name or ""):
            return shift
    return None


def parse_local_date(date_str: str) -> datetime:
    """Validate a ``YYYY-MM-DD`` string and return local midnight as a naive UTC-domain datetime.

    Raises:
        InvalidDateError: Malformed or out-of-range date.
    """
    match = _DATE_PATTERN.match((date_str or "").strip())
    if not match:
        raise InvalidDateError(f"Expected YYYY-MM-DD, got {date_str!r}")

    year, month, day = (int(part) for part in match.groups())
    if year < 1:
        raise InvalidDateError(f"Year out of range in {date_str!r}")
    if not 1 <= month <= 12:
        raise InvalidDateError(f"Month out of range in {date_str!r}")
    if not 1 <= day <= 31:
        raise InvalidDateError(f"Day out of range in {date_str!r}")

    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError as e:
        raise InvalidDateError(f"Invalid calendar date {date_str!r}: {e}") from e


def format_utc_iso(moment: datetime) -> str:
    """Format a UTC datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def resolve_shift_range(date_str: str, shift_code: str) -> ShiftRange:
    """Compute the UTC instants bounding a shift on a local calendar date.

    Args:
        date_str: Local workday, ``YYYY-MM-DD``.
        shift_code: ``D``, ``G`` or ``E`` (shift names are accepted too).

    Returns:
        ShiftRange with millisecond ISO strings.

    Raises:
        InvalidDateError: Malformed date or unknown shift.
    """
    shift = get_shift(shift_code)
    midnight = parse_local_date(date_str)

    try:
        start = midnight + timedelta(hours=shift.start[0], minutes=shift.start[1])
        end = midnight + timedelta(hours=shift.end[0], minutes=shift.end[1])
        if shift.spans_next_day:
            end += timedelta(days=1)
        return ShiftRange(
            start_iso=format_utc_iso(start - LOCAL_UTC_OFFSET),
            end_iso=format_utc_iso(end - LOCAL_UTC_OFFSET),
        )
    except OverflowError as e:
        raise InvalidDateError(f"Date out of range: {date_str!r}") from e


def parse_utc_iso(value: str) -> datetime | None:
    """Parse an ISO timestamp (``Z`` or offset suffix) into an aware UTC datetime."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def local_date_of(value: str) -> str | None:
    """Return the plant-local calendar date (``YYYY-MM-DD``) of a UTC instant."""
    moment = parse_utc_iso(value)
    if moment is None:
        return None
    return (moment + LOCAL_UTC_OFFSET).strftime("%Y-%m-%d")


def local_day_bounds(date_str: str) -> ShiftRange:
    """UTC range covering a local day plus the following morning.

    Night-shift groups start on ``date_str`` and end the next day, so the read
    window extends to the end of the next local day.
    """
    midnight = parse_local_date(date_str)
    start = midnight - LOCAL_UTC_OFFSET
    end = midnight + timedelta(days=2) - LOCAL_UTC_OFFSET - timedelta(milliseconds=1)
    return ShiftRange(start_iso=format_utc_iso(start), end_iso=format_utc_iso(end))


def shift_for_range(date_str: str, range_start: str, range_end: str) -> Shift:
    """Infer which shift a remote group range represents.

    Exact matches against the catalogue win; otherwise a range crossing local
    midnight is Night and anything else is Day.
    """
    for shift in SHIFTS:
        try:
            expected = resolve_shift_range(date_str, shift.code)
        except InvalidDateError:
            break
        if _same_instant(expected.start_iso, range_start) and _same_instant(
            expected.end_iso, range_end
        ):
            return shift

    if local_date_of(range_start) != local_date_of(range_end):
        return NIGHT
    return DAY


def _same_instant(a: str, b: str) -> bool:
    left, right = parse_utc_iso(a), parse_utc_iso(b)
    return left is not None and left == right
