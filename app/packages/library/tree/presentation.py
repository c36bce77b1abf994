"""展示层排序与检索：只对查询结果重新排序，从不回写到树中。"""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from app.packages.library.core.enums import SortFieldEnum, SortOrderEnum
from app.packages.library.tree.model import TreeModel
from app.packages.library.tree.node import Node


def sort_nodes(
    nodes: Iterable[Node],
    order_by: Union[SortFieldEnum, str, None] = SortFieldEnum.NAME,
    order: Union[SortOrderEnum, str, None] = None,
) -> List[Node]:
    """目录始终在前；按名称升/降序，或叶子按大小排序（默认降序）。

    目录没有大小，按大小排序时目录之间仍按名称升序。
    """
    field = SortFieldEnum(order_by or SortFieldEnum.NAME)
    if order is None:
        direction = SortOrderEnum.DESC if field == SortFieldEnum.SIZE else SortOrderEnum.ASC
    else:
        direction = SortOrderEnum(order)
    descending = direction == SortOrderEnum.DESC

    items = list(nodes)
    folders = [n for n in items if n.is_folder]
    leaves = [n for n in items if not n.is_folder]

    def _by_name(n: Node) -> tuple:
        return (n.name.casefold(), n.name)

    if field == SortFieldEnum.SIZE:
        folders.sort(key=_by_name)
        # 先按名称升序，再按大小稳定排序，保证同大小时顺序确定
        leaves.sort(key=_by_name)
        leaves.sort(key=lambda n: n.size_bytes, reverse=descending)
    else:
        folders.sort(key=_by_name, reverse=descending)
        leaves.sort(key=_by_name, reverse=descending)
    return folders + leaves


def search(tree: TreeModel, query: Optional[str], *, kind: Optional[str] = None) -> List[Node]:
    """全局检索：在 ``flatten()`` 结果中按名称做大小写不敏感的子串匹配。"""
    needle = (query or "").strip().casefold()
    result: List[Node] = []
    for node in tree.flatten():
        if kind and node.kind.value != kind:
            continue
        if needle and needle not in node.name.casefold():
            continue
        result.append(node)
    return result
