"""
Sync executor: turns selected changes into one combined Lighthouse mutation.

Additions are grouped per device and shift range so a shift never gets a
second event group; deletions are regrouped by the group that owns each item.
The combined request is sent once and either applies entirely or fails.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..config import SyncSettings
from ..core.errors import RemoteError, RemoteMutationError
from .models import ChangeItem, LocalAssignment, SyncResult
from .shifts import InvalidDateError, get_shift, local_date_of, shift_for_range

logger = logging.getLogger(__name__)


class UnresolvedGroupError(Exception):
    """A DELETE item has no known owning event group and was left out of the batch."""

    def __init__(self, item_id: str, device_id: str | None = None):
        super().__init__(f"No event group found for item {item_id}")
        self.item_id = item_id
        self.device_id = device_id


class MutationClient(Protocol):
    async def apply_batch(self, batch: dict[str, Any]) -> Any: ...


@dataclass
class MutationPlan:
    batch: dict[str, Any]
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: list[UnresolvedGroupError] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.batch


def _target_shift(payload: dict[str, Any]) -> tuple[str, str]:
    """Local date and shift display name an ADD payload belongs to."""
    metadata = payload.get("metadata") or {}
    date = metadata.get("workdayCode") or local_date_of(payload["startIso"]) or ""
    try:
        shift = get_shift(metadata.get("shiftCode", ""))
    except InvalidDateError:
        shift = shift_for_range(date, payload["startIso"], payload["endIso"])
    return date, shift.display_name


def _find_existing_group(
    assignments: Sequence[LocalAssignment], device_id: str, date: str, shift_name: str
) -> str | None:
    for assignment in assignments:
        if (
            assignment.lht_device_id == device_id
            and assignment.date == date
            and assignment.shift == shift_name
            and assignment.lht_group_id
        ):
            return assignment.lht_group_id
    return None


def build_mutation_batch(
    adds: Iterable[ChangeItem],
    updates: Iterable[ChangeItem],
    deletes: Iterable[ChangeItem],
    current_local_assignments: Sequence[LocalAssignment],
    settings: SyncSettings | None = None,
) -> MutationPlan:
    """Plan the combined ``{create, update}`` request for the selected changes.

    Args:
        adds: Selected ADD changes.
        updates: Selected UPDATE changes.
        deletes: Selected DELETE changes.
        current_local_assignments: Snapshot used to find existing groups.
        settings: Group title prefix and item category.

    Returns:
        MutationPlan with the request body and the counts it represents.
    """
    settings = settings or SyncSettings()
    creates: list[dict[str, Any]] = []
    group_updates: list[dict[str, Any]] = []
    plan = MutationPlan(batch={})

    grouped: dict[tuple[str, str, str], list[dict[str, Any]]] = {}
    for change in adds:
        payload = change.payload
        key = (payload["deviceId"], payload["startIso"], payload["endIso"])
        grouped.setdefault(key, []).append(payload)

    for (device_id, start_iso, end_iso), payloads in grouped.items():
        date, shift_name = _target_shift(payloads[0])
        items = [
            {
                "segmentStart": start_iso,
                "segmentEnd": end_iso,
                "category": settings.item_category,
                "metadata": payload["metadata"],
            }
            for payload in payloads
        ]
        group_id = _find_existing_group(current_local_assignments, device_id, date, shift_name)
        if group_id:
            group_updates.append(
                {"deviceId": device_id, "groupId": group_id, "items": {"create": items}}
            )
        else:
            creates.append(
                {
                    "deviceId": device_id,
                    "rangeStart": start_iso,
                    "rangeEnd": end_iso,
                    "title": f"{settings.group_title_prefix}-{date}",
                    "items": items,
                }
            )
        plan.created += len(items)

    for change in updates:
        payload = change.payload
        group_updates.append(
            {
                "deviceId": payload["deviceId"],
                "groupId": payload["groupId"],
                "items": {"update": list(payload["items"])},
            }
        )
        plan.updated += 1

    owners = {
        a.lht_item_id: a for a in current_local_assignments if a.lht_item_id and a.lht_group_id
    }
    deletions: dict[str, dict[str, Any]] = {}
    for change in deletes:
        item_id = change.payload.get("itemId")
        owner = owners.get(item_id)
        if owner is None:
            skipped = UnresolvedGroupError(str(item_id), change.payload.get("deviceId"))
            logger.warning(f"{skipped}; dropping it from the batch")
            plan.skipped.append(skipped)
            continue
        entry = deletions.setdefault(
            owner.lht_group_id,
            {
                "deviceId": owner.lht_device_id or change.payload.get("deviceId"),
                "groupId": owner.lht_group_id,
                "items": {"delete": []},
            },
        )
        entry["items"]["delete"].append(item_id)
        plan.deleted += 1
    group_updates.extend(deletions.values())

    if creates:
        plan.batch["create"] = creates
    if group_updates:
        plan.batch["update"] = group_updates
    return plan


class SyncExecutor:
    """Applies selected changes through a single combined mutation call."""

    def __init__(self, client: MutationClient, settings: SyncSettings | None = None):
        self.client = client
        self.settings = settings or SyncSettings()

    async def execute(
        self,
        selected_adds: Iterable[ChangeItem],
        selected_updates: Iterable[ChangeItem],
        selected_deletes: Iterable[ChangeItem],
        current_local_assignments: Sequence[LocalAssignment],
    ) -> SyncResult:
        """Submit the selected changes.

        Returns:
            Counts of created, updated and deleted items, plus skipped deletes.

        Raises:
            RemoteMutationError: The combined call failed; nothing was applied.
        """
        plan = build_mutation_batch(
            selected_adds,
            selected_updates,
            selected_deletes,
            current_local_assignments,
            self.settings,
        )
        result = SyncResult(skipped=list(plan.skipped))

        if plan.is_empty:
            logger.info("Nothing to apply")
            return result

        logger.info(
            f"Applying batch: {len(plan.batch.get('create', []))} create op(s), "
            f"{len(plan.batch.get('update', []))} update op(s)"
        )
        try:
            await self.client.apply_batch(plan.batch)
        except RemoteMutationError:
            logger.error("Sync batch failed; no changes were applied")
            raise
        except RemoteError as e:
            logger.error(f"Sync batch failed; no changes were applied: {e}")
            raise RemoteMutationError(
                str(e), status_code=e.status_code, raw_response=e.raw_response
            ) from e

        result.created = plan.created
        result.updated = plan.updated
        result.deleted = plan.deleted
        logger.info(f"Synced: +{result.created}, ~{result.updated}, -{result.deleted}")
        return result
