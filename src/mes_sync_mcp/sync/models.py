"""
Records passed between the reconciliation stages.

CanonicalAssignment, ChangeItem and ChangeSet are rebuilt on every analysis
pass and never persisted. LocalAssignment mirrors a planned-output item owned
by Lighthouse.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ERP_ORIGIN = "ERP"
UNKNOWN_ITEM_ID = "unknown"


class ChangeType(str, Enum):
    ADD = "ADD"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def build_identity_key(work_center_code: str, part_number: str, work_order: str) -> str:
    """Composite key correlating an ERP row with a local assignment."""
    return f"{work_center_code}-{part_number}-{work_order}"


@dataclass(frozen=True)
class RawErpRow:
    """Typed view over one duck-typed ERP schedule row.

    Missing values stay None here; coercion defaults are applied by the
    normalizer.
    """

    workday_code: Any = None
    shift_code: Any = None
    route_card_nbr: Any = None
    process_id: Any = None
    operator_code: Any = None
    operator_name: Any = None
    item_code: Any = None
    qty_planned: Any = None
    work_center_code: Any = None

    @classmethod
    def from_mapping(cls, row: dict[str, Any]) -> "RawErpRow":
        operator_name = None
        for key in ("OperatorName", "Operator", "Name"):
            if row.get(key) not in (None, ""):
                operator_name = row[key]
                break
        return cls(
            workday_code=row.get("WorkdayCode"),
            shift_code=row.get("ShiftCode"),
            route_card_nbr=row.get("RouteCardNbr"),
            process_id=row.get("ProcessID"),
            operator_code=row.get("OperatorCode"),
            operator_name=operator_name,
            item_code=row.get("ItemCode"),
            qty_planned=row.get("QtyPlanned"),
            work_center_code=row.get("WorkCenterCode"),
        )


@dataclass(frozen=True)
class CanonicalAssignment:
    """One accepted ERP row, resolved to a Lighthouse device."""

    work_order: str
    process_id: str
    operator_code: str
    operator_name: str
    part_number: str
    planned_quantity: int | float
    work_center_code: str
    shift_code: str
    workday_code: str
    device_id: str
    device_name: str = ""

    @property
    def identity_key(self) -> str:
        return build_identity_key(self.work_center_code, self.part_number, self.work_order)


@dataclass
class LocalAssignment:
    """A planned-output item currently stored on Lighthouse."""

    work_order: str
    part_number: str = ""
    process_id: str = ""
    operator_code: str = ""
    operator_name: str = ""
    planned_quantity: int | float = 0
    work_center_code: str = ""
    shift_code: str = ""
    workday_code: str = ""
    identity_key: str | None = None
    imported_from: str | None = None
    lht_group_id: str | None = None
    lht_item_id: str | None = None
    lht_device_id: str = ""
    batch: int | float = 0
    code: str = ""
    op_number: list[str] = field(default_factory=list)
    date: str = ""
    shift: str = ""
    machine: str = ""

    @property
    def is_erp_origin(self) -> bool:
        return self.imported_from == ERP_ORIGIN


@dataclass
class ChangeItem:
    """A proposed mutation pending operator selection."""

    id: str
    type: ChangeType
    title: str
    subtitle: str
    payload: dict[str, Any]
    diff: str | None = None


@dataclass
class ChangeSet:
    adds: list[ChangeItem] = field(default_factory=list)
    updates: list[ChangeItem] = field(default_factory=list)
    deletes: list[ChangeItem] = field(default_factory=list)

    def all_items(self) -> list[ChangeItem]:
        return [*self.adds, *self.updates, *self.deletes]

    def all_ids(self) -> set[str]:
        return {item.id for item in self.all_items()}

    @property
    def is_empty(self) -> bool:
        return not (self.adds or self.updates or self.deletes)

    def __len__(self) -> int:
        return len(self.adds) + len(self.updates) + len(self.deletes)


@dataclass
class SyncResult:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: list[Exception] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.updated + self.deleted
