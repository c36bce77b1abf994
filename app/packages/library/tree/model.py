"""Tree Model: an arena of nodes keyed by id plus a path index.

A ``TreeModel`` is a snapshot. None of its methods mutate it; the mutation
engine builds a new snapshot through :meth:`TreeModel.apply` and leaves the
old one intact, so a rejected or unpersisted change never leaks into the
snapshot callers are reading.

``parent_id`` is the source of truth for hierarchy. ``path`` is a cached,
denormalized copy that :meth:`check_invariants` verifies against
:meth:`compute_path`.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional

from app.packages.library.tree.errors import TreeIntegrityError
from app.packages.library.tree.node import ROOT, Node
from app.packages.library.tree.paths import ROOT_PATH, SEPARATOR, norm_abs_path


def default_sort_key(node: Node) -> tuple:
    """目录优先，其次按名称（大小写不敏感）排序。"""
    return (not node.is_folder, node.name.casefold(), node.name)


class TreeModel:
    def __init__(self, nodes: Iterable[Node] = ()) -> None:
        self._nodes: Dict[str, Node] = {}
        self._by_path: Dict[str, str] = {}
        duplicates: List[str] = []
        for node in nodes:
            if node.id in self._nodes:
                duplicates.append(f"duplicate id {node.id!r}")
                continue
            self._nodes[node.id] = node
            self._by_path.setdefault(node.path, node.id)
        if duplicates:
            raise TreeIntegrityError(duplicates)
        self._child_index: Optional[Dict[Optional[str], List[str]]] = None

    # ----------------------------
    # 基础访问
    # ----------------------------
    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes.values())

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TreeModel):
            return NotImplemented
        return self._nodes == other._nodes

    def __repr__(self) -> str:
        return f"TreeModel(nodes={len(self._nodes)})"

    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def _children_map(self) -> Dict[Optional[str], List[str]]:
        if self._child_index is None:
            index: Dict[Optional[str], List[str]] = {}
            for node in self._nodes.values():
                index.setdefault(node.parent_id, []).append(node.id)
            self._child_index = index
        return self._child_index

    # ----------------------------
    # 结构查询
    # ----------------------------
    def find_by_path(self, path: Optional[str]) -> Optional[Node]:
        normalized = norm_abs_path(path)
        if normalized == ROOT_PATH:
            return ROOT
        node_id = self._by_path.get(normalized)
        return self._nodes.get(node_id) if node_id is not None else None

    def find_by_id(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def children_of(self, path: Optional[str]) -> List[Node]:
        parent = self.find_by_path(path)
        if parent is None or not parent.is_folder:
            return []
        key = None if parent is ROOT else parent.id
        children = [self._nodes[i] for i in self._children_map().get(key, [])]
        return sorted(children, key=default_sort_key)

    def flatten(self) -> List[Node]:
        """Pre-order traversal of the whole tree, siblings in folders-first name order."""
        result: List[Node] = []
        stack: List[Node] = list(reversed(self.children_of(ROOT_PATH)))
        while stack:
            node = stack.pop()
            result.append(node)
            if node.is_folder:
                stack.extend(reversed(self.children_of(node.path)))
        return result

    def all_folder_paths(self) -> List[Node]:
        """All folders in pre-order, led by the root container."""
        return [ROOT] + [node for node in self.flatten() if node.is_folder]

    def descendants_of(self, node: Node) -> List[Node]:
        """Every node below ``node``, matched by path prefix."""
        if node is ROOT:
            return self.nodes()
        if not node.is_folder:
            return []
        prefix = node.path + SEPARATOR
        return [n for n in self._nodes.values() if n.path.startswith(prefix)]

    def compute_path(self, node: Node) -> str:
        """Derive ``node``'s path from its name and the ``parent_id`` chain."""
        if node is ROOT:
            return ROOT_PATH
        names = [node.name]
        seen = {node.id}
        parent_id = node.parent_id
        # 上限为节点总数，防止环导致死循环
        for _ in range(len(self._nodes) + 1):
            if parent_id is None:
                return SEPARATOR + SEPARATOR.join(reversed(names))
            if parent_id in seen:
                raise TreeIntegrityError([f"cycle through {parent_id!r}"])
            parent = self._nodes.get(parent_id)
            if parent is None:
                raise TreeIntegrityError([f"{node.id!r} references missing parent {parent_id!r}"])
            seen.add(parent_id)
            names.append(parent.name)
            parent_id = parent.parent_id
        raise TreeIntegrityError([f"parent chain of {node.id!r} does not terminate"])

    # ----------------------------
    # 不变量校验
    # ----------------------------
    def check_invariants(self) -> List[str]:
        violations: List[str] = []
        seen_paths: Dict[str, str] = {}
        for node in self._nodes.values():
            other = seen_paths.get(node.path)
            if other is not None:
                violations.append(f"path {node.path!r} shared by {other!r} and {node.id!r}")
            else:
                seen_paths[node.path] = node.id

            if node.parent_id is not None:
                parent = self._nodes.get(node.parent_id)
                if parent is None:
                    violations.append(f"{node.id!r} references missing parent {node.parent_id!r}")
                    continue
                if not parent.is_folder:
                    violations.append(f"{node.id!r} is contained by non-folder {parent.id!r}")

            try:
                expected = self.compute_path(node)
            except TreeIntegrityError as exc:
                violations.extend(exc.violations)
                continue
            if expected != node.path:
                violations.append(f"{node.id!r} has path {node.path!r}, expected {expected!r}")
        return violations

    def validate(self) -> "TreeModel":
        violations = self.check_invariants()
        if violations:
            raise TreeIntegrityError(violations)
        return self

    # ----------------------------
    # 快照派生
    # ----------------------------
    def apply(
        self,
        *,
        inserted: Iterable[Node] = (),
        updated: Iterable[Node] = (),
        deleted: Iterable[str] = (),
    ) -> "TreeModel":
        """Return a new snapshot with the given changes; ``self`` is untouched."""
        nodes = dict(self._nodes)
        for node_id in deleted:
            nodes.pop(node_id, None)
        for node in updated:
            nodes[node.id] = node
        for node in inserted:
            nodes[node.id] = node
        return TreeModel(nodes.values())

    def to_nested(self, path: Optional[str] = ROOT_PATH) -> List[Dict[str, Any]]:
        """Build the nested folder view (``children`` recomputed from parentage)."""
        result: List[Dict[str, Any]] = []
        for child in self.children_of(path):
            item = child.to_dict()
            if child.is_folder:
                item["children"] = self.to_nested(child.path)
            result.append(item)
        return result
