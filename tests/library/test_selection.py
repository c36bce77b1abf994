"""选择状态机：单击、切换、范围选择与全选/清空。"""

from app.packages.library.tree.selection import SelectionState

DISPLAYED = ["a", "b", "c", "d"]


def test_click_selects_only_that_item_and_sets_anchor():
    sel = SelectionState()
    sel.click("b")
    sel.click("c")
    assert sel.selected_ids == ["c"]
    assert sel.anchor == "c"


def test_range_extends_from_anchor_in_both_directions():
    sel = SelectionState()
    sel.click("b")
    sel.extend_to("d", DISPLAYED)
    assert sel.as_set() == {"b", "c", "d"}
    assert sel.anchor == "b"

    sel.extend_to("a", DISPLAYED)
    assert sel.as_set() == {"a", "b"}


def test_range_without_anchor_is_noop():
    sel = SelectionState()
    sel.extend_to("c", DISPLAYED)
    assert len(sel) == 0
    assert sel.anchor is None


def test_range_to_item_not_displayed_is_noop():
    sel = SelectionState()
    sel.click("a")
    sel.extend_to("zz", DISPLAYED)
    assert sel.selected_ids == ["a"]


def test_toggle_adds_and_removes_and_moves_anchor():
    sel = SelectionState()
    sel.click("a")
    sel.toggle("c")
    assert sel.as_set() == {"a", "c"}
    assert sel.anchor == "c"
    sel.toggle("a")
    assert sel.selected_ids == ["c"]
    assert "a" not in sel
    assert sel.anchor == "a"


def test_toggle_then_range_uses_toggled_anchor():
    sel = SelectionState()
    sel.click("a")
    sel.toggle("c")
    sel.extend_to("d", DISPLAYED)
    assert sel.as_set() == {"c", "d"}


def test_select_all_and_clear():
    sel = SelectionState()
    sel.click("b")
    sel.select_all(DISPLAYED)
    assert sel.selected_ids == DISPLAYED
    assert sel.anchor == "b"

    sel.clear()
    assert sel.selected_ids == []
    assert sel.anchor is None


def test_reset_on_navigation_behaves_like_clear():
    sel = SelectionState()
    sel.select_all(DISPLAYED)
    sel.reset()
    assert len(sel) == 0
