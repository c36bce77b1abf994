"""AssetNode CRUD：素材节点表的行存储。

子节点有两种等价查询方式：按路径前缀（以 ``<path>/`` 开头且其后不再含 '/'）
或按 ``parent_id``；两者在一致的数据上结果相同。
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.packages.library.core.enums import NodeKind
from app.packages.library.crud.base import CRUDBase
from app.packages.library.models.asset_node import AssetNode
from app.packages.library.tree.engine import ChangeSet
from app.packages.library.tree.node import Node
from app.packages.library.tree.paths import ROOT_PATH, SEPARATOR

_UPDATABLE_FIELDS = ("name", "path", "parent_id", "content_ref", "size_bytes", "width", "height", "mime_type")


def _child_prefix(path: str) -> str:
    return SEPARATOR if path == ROOT_PATH else path + SEPARATOR


class CRUDAssetNode(CRUDBase[AssetNode]):
    def get_by_path(self, db: Session, *, path: str) -> Optional[AssetNode]:
        return self.query(db).filter(AssetNode.path == path).first()

    def list_all(self, db: Session) -> List[AssetNode]:
        return self.query(db).order_by(AssetNode.path).all()

    def children_by_prefix(self, db: Session, *, path: str) -> List[AssetNode]:
        prefix = _child_prefix(path)
        rows = (
            self.query(db)
            .filter(AssetNode.path.startswith(prefix, autoescape=True))
            .order_by(AssetNode.path)
            .all()
        )
        return [row for row in rows if SEPARATOR not in row.path[len(prefix):]]

    def children_by_parent(self, db: Session, *, parent_id: Optional[str]) -> List[AssetNode]:
        query = self.query(db)
        if parent_id is None:
            query = query.filter(AssetNode.parent_id.is_(None))
        else:
            query = query.filter(AssetNode.parent_id == parent_id)
        return query.order_by(AssetNode.path).all()

    def delete_by_prefix(self, db: Session, *, path: str, auto_commit: bool = True) -> int:
        """删除 ``path`` 本身及其下所有行，返回删除行数。"""
        count = (
            self.query(db)
            .filter(or_(AssetNode.path == path, AssetNode.path.startswith(path + SEPARATOR, autoescape=True)))
            .delete(synchronize_session=False)
        )
        if auto_commit:
            self._commit(db)
        return count

    def insert_node(self, db: Session, node: Node, *, auto_commit: bool = True) -> AssetNode:
        return self.create(db, node.to_row(), auto_commit=auto_commit)

    def update_node(self, db: Session, node: Node, *, auto_commit: bool = True) -> AssetNode:
        row = self.get(db, node.id)
        if row is None:
            raise LookupError(f"asset node {node.id!r} missing from row store")
        for field_name in _UPDATABLE_FIELDS:
            setattr(row, field_name, getattr(node, field_name))
        return self.save(db, row, auto_commit=auto_commit)

    def apply_changes(self, db: Session, changes: ChangeSet) -> None:
        """在一个事务中落库：先删除，再更新，最后插入；任一步失败则整体回滚。"""
        if changes.is_empty:
            return
        try:
            deleted_ids = {n.id for n in changes.deleted}
            # 被删子树的根按路径前缀整体删除，其余行按 id 兜底
            for node in changes.deleted:
                if node.parent_id not in deleted_ids:
                    self.delete_by_prefix(db, path=node.path, auto_commit=False)
            deleted_ids = sorted(deleted_ids)
            for i in range(0, len(deleted_ids), 500):
                batch = deleted_ids[i : i + 500]
                self.query(db).filter(AssetNode.id.in_(batch)).delete(synchronize_session=False)
            db.flush()
            for node in changes.updated:
                self.update_node(db, node, auto_commit=False)
            db.flush()
            for node in changes.inserted:
                self.insert_node(db, node, auto_commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise


def row_to_node(row: AssetNode) -> Node:
    return Node(
        id=row.id,
        name=row.name,
        kind=NodeKind(row.kind),
        path=row.path,
        parent_id=row.parent_id,
        content_ref=row.content_ref,
        size_bytes=int(row.size_bytes or 0),
        width=row.width,
        height=row.height,
        mime_type=row.mime_type,
    )


asset_node_crud = CRUDAssetNode(AssetNode)
