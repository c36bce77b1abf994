"""Mutation Engine: create / register / rename / move / delete over a snapshot.

Each operation takes a :class:`TreeModel`, validates every precondition
against it, and returns a :class:`Mutation` holding the new snapshot and the
row-level :class:`ChangeSet` needed to mirror it. The input snapshot is never
modified; when validation fails a :class:`NamespaceError` is raised and the
caller keeps the snapshot it had.

The engine holds no lock and no tree of its own. Whoever owns the snapshot
(see ``LibraryService``) serializes calls and decides whether to publish the
result after persisting the change set.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, NoReturn, Optional

from app.packages.library.core.enums import NodeKind
from app.packages.library.tree.errors import (
    CircularMoveError,
    DuplicatePathError,
    InvalidContentError,
    InvalidNameError,
    NamespaceError,
    NotFoundError,
)
from app.packages.library.tree.model import TreeModel
from app.packages.library.tree.node import ROOT, Node
from app.packages.library.tree.paths import (
    MAX_PATH_LENGTH,
    is_same_or_descendant,
    join_path,
    name_problem,
    norm_abs_path,
    replace_prefix,
)


@dataclass
class ChangeSet:
    """Rows to mirror into the backing store for one mutation."""

    inserted: List[Node] = field(default_factory=list)
    updated: List[Node] = field(default_factory=list)
    deleted: List[Node] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.inserted or self.updated or self.deleted)

    @property
    def removed_content_refs(self) -> List[str]:
        return [n.content_ref for n in self.deleted if n.is_leaf and n.content_ref]


@dataclass(frozen=True)
class Mutation:
    tree: TreeModel
    changes: ChangeSet
    details: Dict[str, Any] = field(default_factory=dict)


def _dedupe(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(i for i in ids if i is not None))


def _selection_roots(nodes: List[Node]) -> List[Node]:
    """Drop every node that lies inside another selected folder; it travels with that folder."""
    folders = [n for n in nodes if n.is_folder]
    return [
        n
        for n in nodes
        if not any(f.id != n.id and n.path.startswith(f.path + "/") for f in folders)
    ]


def _raise_batch(failures: List[NamespaceError]) -> NoReturn:
    # 循环移动优先于其它错误类型上报
    primary = next((f for f in failures if isinstance(f, CircularMoveError)), failures[0])
    raise type(primary)(
        primary.message,
        path=primary.path,
        target_id=primary.target_id,
        failures=[f.to_failure() for f in failures],
    )


class MutationEngine:
    def __init__(self, id_factory: Optional[Callable[[], str]] = None) -> None:
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    # ----------------------------
    # 前置校验
    # ----------------------------
    @staticmethod
    def _check_name(name: Optional[str], *, target_id: Optional[str] = None) -> str:
        problem = name_problem(name)
        if problem:
            raise InvalidNameError(problem, path=name, target_id=target_id)
        return name  # type: ignore[return-value]

    @staticmethod
    def _resolve_folder(tree: TreeModel, path: Optional[str]) -> Node:
        normalized = norm_abs_path(path)
        node = tree.find_by_path(normalized)
        if node is None:
            raise NotFoundError(f"目标文件夹不存在：{normalized}", path=normalized)
        if not node.is_folder:
            raise NotFoundError(f"目标不是文件夹：{normalized}", path=normalized)
        return node

    @staticmethod
    def _check_free(tree: TreeModel, path: str, *, target_id: Optional[str] = None) -> None:
        if len(path) > MAX_PATH_LENGTH:
            raise InvalidNameError(f"路径过长：{path}", path=path, target_id=target_id)
        occupant = tree.find_by_path(path)
        if occupant is not None and occupant.id != target_id:
            raise DuplicatePathError(f"路径已存在：{path}", path=path, target_id=target_id)

    @staticmethod
    def _parent_of(tree: TreeModel, node: Node) -> Node:
        if node.parent_id is None:
            return ROOT
        parent = tree.find_by_id(node.parent_id)
        if parent is None:
            raise NotFoundError(f"上级文件夹不存在：{node.parent_id}", path=node.path, target_id=node.id)
        return parent

    @staticmethod
    def _rewrite_subtree(tree: TreeModel, folder: Node, new_path: str) -> List[Node]:
        """Prefix-rewrite every descendant path; ``parent_id`` values stay as they are."""
        return [
            d.evolve(path=replace_prefix(d.path, folder.path, new_path))
            for d in tree.descendants_of(folder)
        ]

    # ----------------------------
    # 新建
    # ----------------------------
    def create_folder(self, tree: TreeModel, name: str, parent_path: Optional[str]) -> Mutation:
        self._check_name(name)
        parent = self._resolve_folder(tree, parent_path)
        new_path = join_path(parent.path, name)
        self._check_free(tree, new_path)
        node = Node(
            id=self._id_factory(),
            name=name,
            kind=NodeKind.FOLDER,
            path=new_path,
            parent_id=None if parent is ROOT else parent.id,
        )
        return Mutation(tree.apply(inserted=[node]), ChangeSet(inserted=[node]), {"node": node})

    def register_leaf(
        self,
        tree: TreeModel,
        name: str,
        parent_path: Optional[str],
        *,
        content_ref: str,
        size_bytes: int,
        width: Optional[int] = None,
        height: Optional[int] = None,
        mime_type: Optional[str] = None,
    ) -> Mutation:
        """Insert a leaf. An occupied path is rejected, never overwritten."""
        self._check_name(name)
        if size_bytes is None or size_bytes < 0:
            raise InvalidContentError("文件大小无效", path=name)
        parent = self._resolve_folder(tree, parent_path)
        new_path = join_path(parent.path, name)
        self._check_free(tree, new_path)
        node = Node(
            id=self._id_factory(),
            name=name,
            kind=NodeKind.LEAF,
            path=new_path,
            parent_id=None if parent is ROOT else parent.id,
            content_ref=content_ref,
            size_bytes=int(size_bytes),
            width=width,
            height=height,
            mime_type=mime_type,
        )
        return Mutation(tree.apply(inserted=[node]), ChangeSet(inserted=[node]), {"node": node})

    # ----------------------------
    # 重命名
    # ----------------------------
    def rename(self, tree: TreeModel, target_id: str, new_name: str) -> Mutation:
        target = tree.find_by_id(target_id)
        if target is None:
            raise NotFoundError(f"条目不存在：{target_id}", target_id=target_id)
        self._check_name(new_name, target_id=target_id)
        parent = self._parent_of(tree, target)
        new_path = join_path(parent.path, new_name)
        if new_path == target.path:
            return Mutation(tree, ChangeSet(), {"node": target, "updatedCount": 0})
        self._check_free(tree, new_path, target_id=target.id)

        renamed = target.evolve(name=new_name, path=new_path)
        updated = [renamed]
        if target.is_folder:
            updated.extend(self._rewrite_subtree(tree, target, new_path))
        return Mutation(
            tree.apply(updated=updated),
            ChangeSet(updated=updated),
            {"node": renamed, "oldPath": target.path, "updatedCount": len(updated)},
        )

    # ----------------------------
    # 移动（单个或批量）
    # ----------------------------
    def move(self, tree: TreeModel, target_ids: Iterable[str], destination_path: Optional[str]) -> Mutation:
        """Move every target under ``destination_path`` as one all-or-nothing batch.

        All checks run against the pre-move snapshot. Targets nested inside
        another selected folder are carried along with it rather than moved
        on their own.
        """
        ids = _dedupe(target_ids)
        dest_path = norm_abs_path(destination_path)
        if not ids:
            return Mutation(tree, ChangeSet(), {"moved": 0, "updatedCount": 0, "nodes": [], "destinationPath": dest_path})

        failures: List[NamespaceError] = []
        targets: List[Node] = []
        for tid in ids:
            node = tree.find_by_id(tid)
            if node is None:
                failures.append(NotFoundError(f"条目不存在：{tid}", target_id=tid))
            else:
                targets.append(node)
        roots = _selection_roots(targets)

        # 循环校验独立于目标文件夹是否存在
        for node in roots:
            if dest_path == node.path:
                failures.append(
                    CircularMoveError(f"不能将 {node.path} 移动到其自身", path=node.path, target_id=node.id)
                )
            elif node.is_folder and is_same_or_descendant(dest_path, node.path):
                failures.append(
                    CircularMoveError(
                        f"不能将文件夹 {node.path} 移动到其子目录 {dest_path}", path=node.path, target_id=node.id
                    )
                )

        try:
            destination = self._resolve_folder(tree, dest_path)
        except NotFoundError as exc:
            _raise_batch(failures + [exc])
        if failures:
            _raise_batch(failures)

        new_parent_id = None if destination is ROOT else destination.id
        # 已在目标目录中的条目原地不动，先占住各自的路径
        unchanged = [n.id for n in roots if join_path(destination.path, n.name) == n.path]
        claimed: Dict[str, str] = {n.path: n.id for n in roots if n.id in unchanged}
        updated: List[Node] = []
        moved: List[Node] = []
        for node in roots:
            if node.id in unchanged:
                continue
            new_path = join_path(destination.path, node.name)
            occupant = tree.find_by_path(new_path)
            if (occupant is not None and occupant.id != node.id) or new_path in claimed:
                failures.append(
                    DuplicatePathError(f"目标位置已存在同名条目：{new_path}", path=new_path, target_id=node.id)
                )
                continue
            if len(new_path) > MAX_PATH_LENGTH:
                failures.append(InvalidNameError(f"路径过长：{new_path}", path=new_path, target_id=node.id))
                continue
            claimed[new_path] = node.id
            after = node.evolve(parent_id=new_parent_id, path=new_path)
            moved.append(after)
            updated.append(after)
            if node.is_folder:
                updated.extend(self._rewrite_subtree(tree, node, new_path))
        if failures:
            _raise_batch(failures)

        return Mutation(
            tree.apply(updated=updated),
            ChangeSet(updated=updated),
            {
                "moved": len(moved),
                "updatedCount": len(updated),
                "nodes": moved,
                "unchanged": unchanged,
                "destinationPath": destination.path,
            },
        )

    # ----------------------------
    # 删除（单个或批量，级联）
    # ----------------------------
    def delete(self, tree: TreeModel, target_ids: Iterable[str]) -> Mutation:
        """Remove every target with its whole subtree.

        Unknown ids are reported in ``failures`` while the rest are removed;
        when none of the ids resolve the call fails with ``NotFound``.
        """
        ids = _dedupe(target_ids)
        if not ids:
            return Mutation(tree, ChangeSet(), {"deletedCount": 0, "targetsDeleted": 0, "failures": []})

        failures: List[NamespaceError] = []
        targets: List[Node] = []
        for tid in ids:
            node = tree.find_by_id(tid)
            if node is None:
                failures.append(NotFoundError(f"条目不存在：{tid}", target_id=tid))
            else:
                targets.append(node)
        if not targets:
            _raise_batch(failures)

        removed: Dict[str, Node] = {}
        for root in _selection_roots(targets):
            removed[root.id] = root
            for d in tree.descendants_of(root):
                removed[d.id] = d

        changes = ChangeSet(deleted=list(removed.values()))
        return Mutation(
            tree.apply(deleted=removed.keys()),
            changes,
            {
                "deletedCount": len(removed),
                "targetsDeleted": len(targets),
                "failures": [f.to_failure() for f in failures],
                "contentRefs": changes.removed_content_refs,
            },
        )
