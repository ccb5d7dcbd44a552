"""
Match engine: classifies ERP candidates against ERP-origin local assignments.

Every candidate lands in at most one of the ADD/UPDATE buckets; local
assignments that no candidate claimed become DELETE proposals. All state is
local to a single compute_changes call.
"""

import logging
from collections.abc import Iterable
from typing import Any

from .models import (
    ERP_ORIGIN,
    UNKNOWN_ITEM_ID,
    CanonicalAssignment,
    ChangeItem,
    ChangeSet,
    ChangeType,
    LocalAssignment,
)
from .shifts import resolve_shift_range

logger = logging.getLogger(__name__)

ANNOTATION_TYPE = "PLANNING"


def build_metadata(
    candidate: CanonicalAssignment, annotation_type: str = ANNOTATION_TYPE
) -> dict[str, Any]:
    """Item metadata written to Lighthouse for an ERP-sourced assignment."""
    return {
        "workOrder": candidate.work_order,
        "partNumber": candidate.part_number,
        "operator": candidate.operator_name,
        "operatorName": candidate.operator_name,
        "operatorCode": candidate.operator_code,
        "opNumber": [candidate.process_id],
        "opBatchQty": candidate.planned_quantity,
        "estPartAdd": "",
        "workCenterCode": candidate.work_center_code,
        "shiftCode": candidate.shift_code,
        "workdayCode": candidate.workday_code,
        "annotationType": annotation_type,
        "importedFrom": ERP_ORIGIN,
        "uniqueIdentifier": candidate.identity_key,
    }


def has_changed(existing: LocalAssignment, candidate: CanonicalAssignment) -> bool:
    return (
        existing.batch != candidate.planned_quantity
        or existing.code != candidate.operator_code
        or candidate.process_id not in (existing.op_number or [])
    )


def _title(work_order: Any, part_number: Any) -> str:
    return f"{work_order} • {part_number}"


def compute_changes(
    candidates: Iterable[CanonicalAssignment],
    existing_erp_assignments: Iterable[LocalAssignment],
    annotation_type: str = ANNOTATION_TYPE,
) -> ChangeSet:
    """Partition ERP candidates into additions, updates and deletions.

    Args:
        candidates: Normalized ERP rows for one date/shift.
        existing_erp_assignments: Local assignments imported from the ERP.
            Records of any other origin are ignored.
        annotation_type: Value stamped into item metadata.

    Returns:
        ChangeSet with insertion-ordered buckets.
    """
    existing = [a for a in existing_erp_assignments if a.is_erp_origin]

    # First record wins when two local records share an identity key.
    by_identity: dict[str, LocalAssignment] = {}
    for assignment in existing:
        if assignment.identity_key:
            by_identity.setdefault(assignment.identity_key, assignment)

    processed_keys: set[str] = set()
    changes = ChangeSet()

    for candidate in candidates:
        key = candidate.identity_key
        shift_range = resolve_shift_range(candidate.workday_code, candidate.shift_code)
        metadata = build_metadata(candidate, annotation_type)
        title = _title(candidate.work_order, candidate.part_number)
        subtitle = f"{candidate.device_name} (Op: {candidate.process_id})"
        match = by_identity.get(key)

        if match is None:
            changes.adds.append(
                ChangeItem(
                    id=key,
                    type=ChangeType.ADD,
                    title=title,
                    subtitle=subtitle,
                    payload={
                        "deviceId": candidate.device_id,
                        "startIso": shift_range.start_iso,
                        "endIso": shift_range.end_iso,
                        "metadata": metadata,
                    },
                )
            )
            continue

        processed_keys.add(match.lht_item_id or UNKNOWN_ITEM_ID)

        if not has_changed(match, candidate):
            continue
        if not (match.lht_group_id and match.lht_item_id):
            logger.debug(f"Skipping update for {key}: local record has no remote ids")
            continue

        changes.updates.append(
            ChangeItem(
                id=key,
                type=ChangeType.UPDATE,
                title=title,
                subtitle=subtitle,
                diff=f"Qty: {match.batch} → {candidate.planned_quantity}",
                payload={
                    "deviceId": candidate.device_id,
                    "groupId": match.lht_group_id,
                    "items": [
                        {
                            "id": match.lht_item_id,
                            "segmentStart": shift_range.start_iso,
                            "segmentEnd": shift_range.end_iso,
                            "metadata": metadata,
                        }
                    ],
                },
            )
        )

    for assignment in existing:
        if not assignment.lht_item_id or assignment.lht_item_id in processed_keys:
            continue
        changes.deletes.append(
            ChangeItem(
                id=assignment.lht_item_id or UNKNOWN_ITEM_ID,
                type=ChangeType.DELETE,
                title=_title(assignment.work_order, assignment.part_number),
                subtitle=f"{assignment.machine or assignment.lht_device_id} • Was Qty: {assignment.batch}",
                payload={
                    "deviceId": assignment.lht_device_id,
                    "itemId": assignment.lht_item_id,
                },
            )
        )

    logger.info(
        f"Computed changes: {len(changes.adds)} add(s), "
        f"{len(changes.updates)} update(s), {len(changes.deletes)} delete(s)"
    )
    return changes
