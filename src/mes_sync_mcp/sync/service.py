"""
Sync orchestration: analyse a date/shift, then apply a selection.

Reads happen one after another and every analysis re-reads Lighthouse, so the
match engine sees a local snapshot taken after the ERP fetch. The executor's single mutation is awaited before
the snapshot is invalidated.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..config import SyncSettings
from .assignments import LighthouseAssignmentStore
from .executor import SyncExecutor
from .matcher import compute_changes
from .models import CanonicalAssignment, ChangeSet, LocalAssignment, SyncResult
from .normalizer import DeviceDirectory, RowRejection, normalize_rows
from .selector import ChangeSelection
from .shifts import Shift, get_shift, parse_local_date

logger = logging.getLogger(__name__)


class ScheduleSource(Protocol):
    async def fetch_schedule(
        self, date: str, shift_code: str | None = None
    ) -> list[dict[str, Any]]: ...


@dataclass
class SyncAnalysis:
    date: str
    shift: Shift
    changes: ChangeSet
    candidates: list[CanonicalAssignment] = field(default_factory=list)
    rejections: list[RowRejection] = field(default_factory=list)
    assignments: list[LocalAssignment] = field(default_factory=list)
    row_count: int = 0

    def selection(self) -> ChangeSelection:
        return ChangeSelection(self.changes)


class SyncService:
    """Wires the ERP source, Lighthouse client and assignment store together."""

    def __init__(
        self,
        erp: ScheduleSource,
        lighthouse: Any,
        store: LighthouseAssignmentStore | None = None,
        settings: SyncSettings | None = None,
    ):
        """Initialize the service.

        Args:
            erp: Provides ``fetch_schedule(date, shift_code)``.
            lighthouse: Provides ``list_devices()``, ``read_groups_with_items()``
                and ``apply_batch()``.
            store: Assignment snapshot; defaults to one backed by ``lighthouse``.
            settings: Reconciliation settings.
        """
        self.erp = erp
        self.lighthouse = lighthouse
        self.store = store or LighthouseAssignmentStore(lighthouse)
        self.settings = settings or SyncSettings()
        self.executor = SyncExecutor(lighthouse, self.settings)

    async def analyze(self, date: str, shift: str | Shift) -> SyncAnalysis:
        """Compare the ERP schedule for a date/shift with the local assignments.

        Raises:
            InvalidDateError: Malformed date or unknown shift.
            RemoteFetchError: Any read failed; no partial analysis is returned.
        """
        shift = shift if isinstance(shift, Shift) else get_shift(shift)
        parse_local_date(date)

        rows = await self.erp.fetch_schedule(date, shift.code)
        devices = DeviceDirectory(await self.lighthouse.list_devices())
        assignments = await self.store.list_assignments(date, devices, refresh=True)

        candidates, rejections = normalize_rows(rows, date, shift, devices)
        # Other shifts on the same date are out of scope for this pass.
        erp_assignments = [
            a for a in assignments if a.is_erp_origin and a.shift == shift.display_name
        ]
        changes = compute_changes(candidates, erp_assignments, self.settings.annotation_type)

        return SyncAnalysis(
            date=date,
            shift=shift,
            changes=changes,
            candidates=candidates,
            rejections=rejections,
            assignments=assignments,
            row_count=len(rows),
        )

    async def execute(
        self, analysis: SyncAnalysis, selection: ChangeSelection | None = None
    ) -> SyncResult:
        """Apply the selected changes of an analysis.

        Raises:
            RemoteMutationError: The combined call failed; the snapshot is kept.
        """
        selected = (selection or analysis.selection()).confirm()
        result = await self.executor.execute(
            selected.adds, selected.updates, selected.deletes, analysis.assignments
        )
        self.store.invalidate(analysis.date)
        return result
