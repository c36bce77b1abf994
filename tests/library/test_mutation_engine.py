"""变更引擎：前置校验、级联路径改写、批量移动/删除与快照不可变。"""

import pytest

from app.packages.library.core.enums import ErrorKind
from app.packages.library.tree.engine import MutationEngine
from app.packages.library.tree.errors import (
    CircularMoveError,
    DuplicatePathError,
    InvalidContentError,
    InvalidNameError,
    NotFoundError,
)
from app.packages.library.tree.model import TreeModel


def _assert_consistent(tree: TreeModel) -> None:
    assert tree.check_invariants() == []
    paths = [n.path for n in tree]
    assert len(paths) == len(set(paths))
    for node in tree:
        assert node.path == tree.compute_path(node)


def _mkdir(engine: MutationEngine, tree: TreeModel, name: str, parent: str = "/") -> TreeModel:
    return engine.create_folder(tree, name, parent).tree


def _leaf(engine: MutationEngine, tree: TreeModel, name: str, parent: str, size: int = 1) -> TreeModel:
    return engine.register_leaf(tree, name, parent, content_ref=f"ref-{name}", size_bytes=size).tree


@pytest.fixture()
def sample(engine: MutationEngine) -> TreeModel:
    """/A, /A/x, /A/x/y, /A/img.png, /A/B, /C"""
    tree = TreeModel()
    tree = _mkdir(engine, tree, "A")
    tree = _mkdir(engine, tree, "x", "/A")
    tree = _mkdir(engine, tree, "y", "/A/x")
    tree = _leaf(engine, tree, "img.png", "/A")
    tree = _mkdir(engine, tree, "B", "/A")
    tree = _mkdir(engine, tree, "C")
    _assert_consistent(tree)
    return tree


# ----------------------------
# 新建 / 登记
# ----------------------------
def test_create_folder_at_root_and_nested(engine: MutationEngine):
    m1 = engine.create_folder(TreeModel(), "Products", "/")
    products = m1.details["node"]
    assert products.path == "/Products"
    assert products.parent_id is None
    assert m1.changes.inserted == [products]

    m2 = engine.create_folder(m1.tree, "Electronics", "Products")
    child = m2.details["node"]
    assert child.path == "/Products/Electronics"
    assert child.parent_id == products.id
    _assert_consistent(m2.tree)


def test_create_folder_twice_is_duplicate(engine: MutationEngine, sample: TreeModel):
    tree = engine.create_folder(sample, "D", "/A").tree
    with pytest.raises(DuplicatePathError) as exc_info:
        engine.create_folder(tree, "D", "/A")
    assert exc_info.value.kind == ErrorKind.DUPLICATE_PATH
    assert exc_info.value.path == "/A/D"
    assert [n.path for n in tree].count("/A/D") == 1


@pytest.mark.parametrize("bad_name", ["", "   ", "a/b", ".", "..", "bad\x00name", " padded", "x" * 256])
def test_create_folder_rejects_invalid_names(engine: MutationEngine, bad_name: str):
    with pytest.raises(InvalidNameError):
        engine.create_folder(TreeModel(), bad_name, "/")


def test_create_folder_under_missing_parent(engine: MutationEngine, sample: TreeModel):
    with pytest.raises(NotFoundError) as exc_info:
        engine.create_folder(sample, "D", "/Nope")
    assert exc_info.value.path == "/Nope"


def test_create_folder_under_leaf_is_rejected(engine: MutationEngine, sample: TreeModel):
    with pytest.raises(NotFoundError):
        engine.create_folder(sample, "D", "/A/img.png")


def test_register_leaf_never_overwrites(engine: MutationEngine, sample: TreeModel):
    with pytest.raises(DuplicatePathError):
        engine.register_leaf(sample, "img.png", "/A", content_ref="other", size_bytes=3)
    # 与目录同名同样视为占用
    with pytest.raises(DuplicatePathError):
        engine.register_leaf(sample, "B", "/A", content_ref="other", size_bytes=3)
    assert sample.find_by_path("/A/img.png").content_ref == "ref-img.png"


def test_register_leaf_keeps_attributes(engine: MutationEngine):
    m = engine.register_leaf(
        TreeModel(), "cat.png", "/", content_ref="abc-cat.png", size_bytes=2048, width=640, height=480, mime_type="image/png"
    )
    node = m.details["node"]
    assert node.is_leaf
    assert (node.size_bytes, node.width, node.height, node.mime_type) == (2048, 640, 480, "image/png")


def test_register_leaf_rejects_negative_size(engine: MutationEngine):
    with pytest.raises(InvalidContentError):
        engine.register_leaf(TreeModel(), "a.png", "/", content_ref="r", size_bytes=-1)


# ----------------------------
# 重命名
# ----------------------------
def test_rename_folder_rewrites_descendant_prefix(engine: MutationEngine, sample: TreeModel):
    a = sample.find_by_path("/A")
    y_before = sample.find_by_path("/A/x/y")

    m = engine.rename(sample, a.id, "Z")

    y_after = m.tree.find_by_id(y_before.id)
    assert y_after.path == "/Z/x/y"
    assert y_after.parent_id == y_before.parent_id
    assert m.tree.find_by_path("/Z/img.png") is not None
    assert m.tree.find_by_path("/A") is None
    assert m.details["updatedCount"] == 5
    _assert_consistent(m.tree)


def test_rename_does_not_touch_sibling_with_shared_prefix(engine: MutationEngine, sample: TreeModel):
    tree = _mkdir(engine, sample, "AB")
    m = engine.rename(tree, tree.find_by_path("/A").id, "Q")
    assert m.tree.find_by_path("/AB") is not None
    _assert_consistent(m.tree)


def test_rename_to_same_name_is_noop(engine: MutationEngine, sample: TreeModel):
    a = sample.find_by_path("/A")
    m = engine.rename(sample, a.id, "A")
    assert m.changes.is_empty
    assert m.tree == sample


def test_rename_collision_and_unknown_target(engine: MutationEngine, sample: TreeModel):
    with pytest.raises(DuplicatePathError):
        engine.rename(sample, sample.find_by_path("/A").id, "C")
    with pytest.raises(NotFoundError):
        engine.rename(sample, "missing", "whatever")
    with pytest.raises(InvalidNameError):
        engine.rename(sample, sample.find_by_path("/C").id, "")


# ----------------------------
# 移动
# ----------------------------
def test_move_into_own_subtree_is_circular_and_leaves_tree_unchanged(engine: MutationEngine, sample: TreeModel):
    snapshot = sample.nodes()
    a = sample.find_by_path("/A")
    with pytest.raises(CircularMoveError) as exc_info:
        engine.move(sample, [a.id], "/A/sub")
    assert exc_info.value.target_id == a.id
    assert sample.nodes() == snapshot


def test_move_into_itself_is_circular(engine: MutationEngine, sample: TreeModel):
    a = sample.find_by_path("/A")
    with pytest.raises(CircularMoveError):
        engine.move(sample, [a.id], "/A")
    with pytest.raises(CircularMoveError):
        engine.move(sample, [a.id], "/A/x/y")


def test_move_folder_rewrites_subtree(engine: MutationEngine, sample: TreeModel):
    a = sample.find_by_path("/A")
    c = sample.find_by_path("/C")
    m = engine.move(sample, [a.id], "/C")
    moved = m.tree.find_by_id(a.id)
    assert moved.path == "/C/A"
    assert moved.parent_id == c.id
    assert m.tree.find_by_path("/C/A/x/y") is not None
    assert m.details["moved"] == 1
    _assert_consistent(m.tree)


def test_move_to_root_clears_parent(engine: MutationEngine, sample: TreeModel):
    x = sample.find_by_path("/A/x")
    m = engine.move(sample, [x.id], "/")
    assert m.tree.find_by_id(x.id).parent_id is None
    assert m.tree.find_by_path("/x/y") is not None
    _assert_consistent(m.tree)


def test_move_into_missing_or_leaf_destination(engine: MutationEngine, sample: TreeModel):
    c = sample.find_by_path("/C")
    with pytest.raises(NotFoundError):
        engine.move(sample, [c.id], "/Nope")
    with pytest.raises(NotFoundError):
        engine.move(sample, [c.id], "/A/img.png")


def test_move_collision_rejected(engine: MutationEngine, sample: TreeModel):
    tree = _mkdir(engine, sample, "B", "/C")
    with pytest.raises(DuplicatePathError) as exc_info:
        engine.move(tree, [tree.find_by_path("/A/B").id], "/C")
    assert exc_info.value.path == "/C/B"


def test_batch_move_is_all_or_nothing(engine: MutationEngine, sample: TreeModel):
    c = sample.find_by_path("/C")
    a = sample.find_by_path("/A")
    snapshot = sample.nodes()
    # /C 可以移动到 /A/B，但 /A 不能移入自己的子目录，整批拒绝
    with pytest.raises(CircularMoveError) as exc_info:
        engine.move(sample, [c.id, a.id], "/A/B")
    assert [f["id"] for f in exc_info.value.failures] == [a.id]
    assert sample.nodes() == snapshot


def test_batch_move_reports_every_failed_target(engine: MutationEngine, sample: TreeModel):
    a = sample.find_by_path("/A")
    with pytest.raises(CircularMoveError) as exc_info:
        engine.move(sample, ["ghost", a.id], "/A/x")
    kinds = {f["errorKind"] for f in exc_info.value.failures}
    assert kinds == {"NotFound", "CircularMove"}


def test_batch_move_detects_name_clash_between_targets(engine: MutationEngine, sample: TreeModel):
    tree = _leaf(engine, sample, "img.png", "/C")
    ids = [tree.find_by_path("/A/img.png").id, tree.find_by_path("/C/img.png").id]
    with pytest.raises(DuplicatePathError):
        engine.move(tree, ids, "/A/B")


def test_batch_move_carries_nested_selection_with_its_folder(engine: MutationEngine, sample: TreeModel):
    a = sample.find_by_path("/A")
    y = sample.find_by_path("/A/x/y")
    m = engine.move(sample, [a.id, y.id], "/C")
    assert m.details["moved"] == 1
    assert m.tree.find_by_id(y.id).path == "/C/A/x/y"
    _assert_consistent(m.tree)


@pytest.mark.parametrize("resident_first", [False, True])
def test_move_onto_selected_item_already_in_destination_is_duplicate(engine: MutationEngine, resident_first: bool):
    tree = _mkdir(engine, TreeModel(), "A")
    tree = _mkdir(engine, tree, "P")
    tree = _mkdir(engine, tree, "A", "/P")
    resident, incoming = tree.find_by_path("/A"), tree.find_by_path("/P/A")
    ids = [resident.id, incoming.id] if resident_first else [incoming.id, resident.id]

    with pytest.raises(DuplicatePathError) as exc_info:
        engine.move(tree, ids, "/")
    assert exc_info.value.target_id == incoming.id
    assert exc_info.value.path == "/A"
    _assert_consistent(tree)


def test_move_target_already_at_destination_is_unchanged(engine: MutationEngine, sample: TreeModel):
    b = sample.find_by_path("/A/B")
    c = sample.find_by_path("/C")
    m = engine.move(sample, [b.id, c.id], "/A")
    assert m.details["unchanged"] == [b.id]
    assert m.tree.find_by_id(c.id).path == "/A/C"
    _assert_consistent(m.tree)


def test_move_with_no_targets_is_noop(engine: MutationEngine, sample: TreeModel):
    m = engine.move(sample, [], "/C")
    assert m.changes.is_empty
    assert m.tree is sample


# ----------------------------
# 删除
# ----------------------------
def test_delete_cascades_by_prefix(engine: MutationEngine):
    tree = _mkdir(engine, TreeModel(), "A")
    tree = _leaf(engine, tree, "img.png", "/A")
    tree = _mkdir(engine, tree, "B", "/A")
    ids = {tree.find_by_path(p).id for p in ("/A", "/A/img.png", "/A/B")}

    m = engine.delete(tree, [tree.find_by_path("/A").id])

    assert m.details["deletedCount"] == 3
    assert m.details["contentRefs"] == ["ref-img.png"]
    assert not ids & {n.id for n in m.tree.flatten()}
    assert len(tree) == 3


def test_delete_reports_unknown_ids_and_removes_the_rest(engine: MutationEngine, sample: TreeModel):
    c = sample.find_by_path("/C")
    m = engine.delete(sample, [c.id, "ghost"])
    assert m.details["targetsDeleted"] == 1
    assert m.details["failures"][0]["id"] == "ghost"
    assert m.tree.find_by_id(c.id) is None


def test_delete_with_only_unknown_ids_fails(engine: MutationEngine, sample: TreeModel):
    with pytest.raises(NotFoundError):
        engine.delete(sample, ["ghost"])


def test_delete_overlapping_selection_counts_each_node_once(engine: MutationEngine, sample: TreeModel):
    a = sample.find_by_path("/A")
    y = sample.find_by_path("/A/x/y")
    m = engine.delete(sample, [y.id, a.id])
    assert m.details["deletedCount"] == 5
    assert [n.path for n in m.tree] == ["/C"]


# ----------------------------
# 端到端场景
# ----------------------------
def test_products_scenario(engine: MutationEngine):
    tree = TreeModel()
    tree = engine.create_folder(tree, "Products", "/").tree
    tree = engine.create_folder(tree, "Electronics", "Products").tree
    m = engine.register_leaf(tree, "laptop.jpg", "Products/Electronics", content_ref="ref-laptop", size_bytes=1024)
    tree, laptop = m.tree, m.details["node"]
    _assert_consistent(tree)

    tree = engine.rename(tree, tree.find_by_path("/Products/Electronics").id, "Gadgets").tree
    assert tree.find_by_id(laptop.id).path == "/Products/Gadgets/laptop.jpg"

    tree = engine.move(tree, [tree.find_by_path("Products/Gadgets").id], "/").tree
    assert tree.find_by_id(laptop.id).path == "/Gadgets/laptop.jpg"
    _assert_consistent(tree)

    tree = engine.delete(tree, [tree.find_by_path("/Gadgets").id]).tree
    assert [(n.name, n.is_folder) for n in tree.flatten()] == [("Products", True)]
