"""Tests for operator change selection."""

import pytest

from mes_sync_mcp.sync.models import ChangeItem, ChangeSet, ChangeType
from mes_sync_mcp.sync.selector import ChangeSelection


def _item(change_id: str, change_type: ChangeType, title: str = "", subtitle: str = "") -> ChangeItem:
    return ChangeItem(id=change_id, type=change_type, title=title, subtitle=subtitle, payload={})


@pytest.fixture
def changes() -> ChangeSet:
    return ChangeSet(
        adds=[
            _item("a1", ChangeType.ADD, "WO-1 • P-1", "CNC Lathe 1 (Op: 10)"),
            _item("a2", ChangeType.ADD, "WO-2 • P-2", "Press 2 (Op: 20)"),
        ],
        updates=[_item("u1", ChangeType.UPDATE, "WO-3 • P-3", "Press 2 (Op: 30)")],
        deletes=[_item("d1", ChangeType.DELETE, "WO-4 • P-4", "CNC Lathe 1 • Was Qty: 5")],
    )


class TestChangeSelection:
    def test_everything_selected_by_default(self, changes: ChangeSet) -> None:
        selection = ChangeSelection(changes)
        assert selection.selected_ids == {"a1", "a2", "u1", "d1"}
        assert len(selection) == 4

    def test_initial_selection_is_restricted_to_known_ids(self, changes: ChangeSet) -> None:
        selection = ChangeSelection(changes, ["a1", "zzz"])
        assert selection.selected_ids == {"a1"}

    def test_toggle(self, changes: ChangeSet) -> None:
        selection = ChangeSelection(changes)

        assert selection.toggle("u1") is False
        assert not selection.is_selected("u1")
        assert selection.toggle("u1") is True
        assert selection.is_selected("u1")

    def test_toggle_unknown_id(self, changes: ChangeSet) -> None:
        with pytest.raises(KeyError):
            ChangeSelection(changes).toggle("nope")

    def test_select_and_deselect_all(self, changes: ChangeSet) -> None:
        selection = ChangeSelection(changes)
        selection.deselect_all()
        assert len(selection) == 0
        selection.select_all()
        assert len(selection) == 4

    def test_select_only_and_exclude(self, changes: ChangeSet) -> None:
        selection = ChangeSelection(changes)
        selection.select_only(["a1", "d1", "ghost"])
        selection.exclude(["d1"])
        assert selection.selected_ids == {"a1"}

    def test_confirm_keeps_bucket_order(self, changes: ChangeSet) -> None:
        selection = ChangeSelection(changes)
        selection.toggle("a1")

        confirmed = selection.confirm()

        assert [c.id for c in confirmed.adds] == ["a2"]
        assert [c.id for c in confirmed.updates] == ["u1"]
        assert [c.id for c in confirmed.deletes] == ["d1"]

    def test_confirm_does_not_mutate_changes(self, changes: ChangeSet) -> None:
        selection = ChangeSelection(changes)
        selection.deselect_all()

        assert selection.confirm().is_empty
        assert len(changes) == 4


class TestVisible:
    def test_filter_by_type(self, changes: ChangeSet) -> None:
        selection = ChangeSelection(changes)
        assert [c.id for c in selection.visible(ChangeType.ADD)] == ["a1", "a2"]
        assert [c.id for c in selection.visible("delete")] == ["d1"]
        assert len(selection.visible("ALL")) == 4
        assert len(selection.visible()) == 4

    def test_search_title_and_subtitle(self, changes: ChangeSet) -> None:
        selection = ChangeSelection(changes)
        assert [c.id for c in selection.visible(query="press 2")] == ["a2", "u1"]
        assert [c.id for c in selection.visible("UPDATE", "wo-3")] == ["u1"]
        assert selection.visible(query="nothing") == []

    def test_visibility_does_not_change_selection(self, changes: ChangeSet) -> None:
        selection = ChangeSelection(changes)
        selection.visible("ADD", "WO-1")
        assert len(selection) == 4
