"""
ERP-to-Lighthouse schedule reconciliation.

- shifts: Shift catalogue and UTC range resolution
- normalizer: ERP row acceptance and canonicalization
- matcher: ADD/UPDATE/DELETE classification
- selector: Operator opt-out selection
- executor: Single combined mutation call
- assignments: Local assignment snapshot from Lighthouse
- service: Analyse/execute orchestration
"""

from .assignments import LighthouseAssignmentStore, assignments_from_groups
from .executor import SyncExecutor, UnresolvedGroupError, build_mutation_batch
from .matcher import compute_changes
from .models import (
    CanonicalAssignment,
    ChangeItem,
    ChangeSet,
    ChangeType,
    LocalAssignment,
    RawErpRow,
    SyncResult,
)
from .normalizer import DeviceDirectory, RowRejection, normalize, normalize_rows
from .selector import ChangeSelection
from .service import SyncAnalysis, SyncService
from .shifts import InvalidDateError, ShiftRange, resolve_shift_range

__all__ = [
    "CanonicalAssignment",
    "ChangeItem",
    "ChangeSelection",
    "ChangeSet",
    "ChangeType",
    "DeviceDirectory",
    "InvalidDateError",
    "LighthouseAssignmentStore",
    "LocalAssignment",
    "RawErpRow",
    "RowRejection",
    "ShiftRange",
    "SyncAnalysis",
    "SyncExecutor",
    "SyncResult",
    "SyncService",
    "UnresolvedGroupError",
    "assignments_from_groups",
    "build_mutation_batch",
    "compute_changes",
    "normalize",
    "normalize_rows",
    "resolve_shift_range",
]
