"""节点值对象：目录与图片叶子节点共用一个不可变结构。"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional

from app.packages.library.core.enums import NodeKind
from app.packages.library.tree.paths import ROOT_PATH


@dataclass(frozen=True)
class Node:
    id: str
    name: str
    kind: NodeKind
    path: str
    parent_id: Optional[str] = None
    # 以下字段仅对叶子节点有意义
    content_ref: Optional[str] = None
    size_bytes: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    mime_type: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.kind == NodeKind.FOLDER

    @property
    def is_leaf(self) -> bool:
        return self.kind == NodeKind.LEAF

    def evolve(self, **changes: Any) -> "Node":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """对外展示结构（camelCase，与接口层保持一致）。"""
        payload = {
            "id": self.id,
            "name": self.name,
            "type": self.kind.value,
            "path": self.path,
            "parentId": self.parent_id,
        }
        if self.is_leaf:
            payload.update(
                {
                    "contentRef": self.content_ref,
                    "sizeBytes": self.size_bytes,
                    "width": self.width,
                    "height": self.height,
                    "mimeType": self.mime_type,
                }
            )
        return payload

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row["kind"] = self.kind.value
        return row


# 根目录虚拟容器：不入库、不可变更，其子节点即顶层节点
ROOT = Node(id="", name="", kind=NodeKind.FOLDER, path=ROOT_PATH, parent_id=None)
