"""
Operator selection over a computed change set.

Every change starts selected; the operator opts out of what they do not want.
"""

from collections.abc import Iterable

from .models import ChangeItem, ChangeSet, ChangeType


class ChangeSelection:
    """Mutable selection state over an immutable ChangeSet."""

    def __init__(self, changes: ChangeSet, initially_selected: Iterable[str] | None = None):
        self.changes = changes
        if initially_selected is None:
            self._selected = changes.all_ids()
        else:
            self._selected = set(initially_selected) & changes.all_ids()

    @property
    def selected_ids(self) -> frozenset[str]:
        return frozenset(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def is_selected(self, change_id: str) -> bool:
        return change_id in self._selected

    def toggle(self, change_id: str) -> bool:
        """Flip one change in or out of the selection.

        Returns:
            True if the change is selected afterwards.

        Raises:
            KeyError: The id is not part of the change set.
        """
        if change_id not in self.changes.all_ids():
            raise KeyError(change_id)
        if change_id in self._selected:
            self._selected.discard(change_id)
            return False
        self._selected.add(change_id)
        return True

    def select_all(self) -> None:
        self._selected = self.changes.all_ids()

    def deselect_all(self) -> None:
        self._selected = set()

    def select_only(self, change_ids: Iterable[str]) -> None:
        self._selected = set(change_ids) & self.changes.all_ids()

    def exclude(self, change_ids: Iterable[str]) -> None:
        self._selected -= set(change_ids)

    def visible(
        self, change_type: ChangeType | str | None = None, query: str = ""
    ) -> list[ChangeItem]:
        """Changes matching a type tab and a free-text search on title/subtitle."""
        items = self.changes.all_items()
        if change_type is not None:
            if isinstance(change_type, ChangeType):
                change_type = change_type.value
            wanted = change_type.upper()
            if wanted != "ALL":
                items = [item for item in items if item.type.value == wanted]
        needle = query.strip().lower()
        if needle:
            items = [
                item
                for item in items
                if needle in item.title.lower() or needle in item.subtitle.lower()
            ]
        return items

    def confirm(self) -> ChangeSet:
        """Return the selected changes, bucket order preserved."""
        return ChangeSet(
            adds=[item for item in self.changes.adds if item.id in self._selected],
            updates=[item for item in self.changes.updates if item.id in self._selected],
            deletes=[item for item in self.changes.deletes if item.id in self._selected],
        )
