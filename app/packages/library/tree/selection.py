"""Selection state machine over the currently displayed list of node ids.

Independent of the engine; its output (``selected_ids``) feeds batch move
and batch delete.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence


class SelectionState:
    def __init__(self) -> None:
        self._selected: List[str] = []
        self._anchor: Optional[str] = None

    @property
    def anchor(self) -> Optional[str]:
        return self._anchor

    @property
    def selected_ids(self) -> List[str]:
        return list(self._selected)

    def as_set(self) -> frozenset:
        return frozenset(self._selected)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def click(self, item_id: str) -> None:
        """Plain click: select exactly ``item_id`` and make it the anchor."""
        self._selected = [item_id]
        self._anchor = item_id

    def toggle(self, item_id: str) -> None:
        """Modifier click: add or remove ``item_id``; the anchor follows it."""
        if item_id in self._selected:
            self._selected.remove(item_id)
        else:
            self._selected.append(item_id)
        self._anchor = item_id

    def extend_to(self, item_id: str, displayed: Sequence[str]) -> None:
        """Range click: select the inclusive slice between the anchor and ``item_id``.

        The anchor does not move. Without an anchor, or when either end is not
        in ``displayed``, nothing changes.
        """
        if self._anchor is None:
            return
        try:
            start = displayed.index(self._anchor)
            end = displayed.index(item_id)
        except ValueError:
            return
        if start > end:
            start, end = end, start
        self._selected = list(displayed[start : end + 1])

    def select_all(self, displayed: Iterable[str]) -> None:
        self._selected = list(dict.fromkeys(displayed))

    def clear(self) -> None:
        self._selected = []
        self._anchor = None

    # 切换当前目录时与清空行为一致
    reset = clear
