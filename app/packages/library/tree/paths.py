"""Path utilities for the asset namespace.

Rules shared by the tree model, the engine and the row store:
- Absolute path always starts with '/', never ends with '/';
- Root is represented by '/' and is never stored as a node;
- A node name is a single segment: no '/', no NUL, not '.' or '..'.
"""

from __future__ import annotations

from typing import Optional

ROOT_PATH = "/"
SEPARATOR = "/"
MAX_NAME_LENGTH = 255
MAX_PATH_LENGTH = 1024


def norm_abs_path(p: Optional[str]) -> str:
    """Normalize caller input such as ``"Products/Electronics/"`` to ``"/Products/Electronics"``."""
    s = (p or ROOT_PATH).strip() or ROOT_PATH
    if not s.startswith(SEPARATOR):
        s = SEPARATOR + s
    while "//" in s:
        s = s.replace("//", SEPARATOR)
    if len(s) > 1:
        s = s.rstrip(SEPARATOR) or ROOT_PATH
    return s


def join_path(parent_path: str, name: str) -> str:
    # root parent is the empty prefix
    if parent_path == ROOT_PATH:
        return SEPARATOR + name
    return f"{parent_path}{SEPARATOR}{name}"


def parent_of(path: str) -> str:
    if path == ROOT_PATH:
        return ROOT_PATH
    head = path.rsplit(SEPARATOR, 1)[0]
    return head or ROOT_PATH


def is_same_or_descendant(path: str, ancestor: str) -> bool:
    """``path`` equals ``ancestor`` or lies anywhere beneath it."""
    if ancestor == ROOT_PATH:
        return True
    return path == ancestor or path.startswith(ancestor + SEPARATOR)


def replace_prefix(path: str, old_prefix: str, new_prefix: str) -> str:
    """Rewrite ``old_prefix`` to ``new_prefix`` on a path inside that subtree.

    Paths outside the subtree come back untouched, so ``/Ab`` is not affected
    by rewriting ``/A``.
    """
    if path == old_prefix:
        return new_prefix
    if path.startswith(old_prefix + SEPARATOR):
        return new_prefix + path[len(old_prefix):]
    return path


def name_problem(name: Optional[str]) -> Optional[str]:
    """Return a message describing why ``name`` is not a valid segment, or ``None``."""
    if name is None or not name.strip():
        return "名称不能为空"
    if name != name.strip():
        return "名称首尾不能包含空白字符"
    if SEPARATOR in name or "\\" in name:
        return "名称不能包含路径分隔符"
    if "\x00" in name:
        return "名称包含非法字符"
    if name in {".", ".."}:
        return "名称不能为 '.' 或 '..'"
    if len(name) > MAX_NAME_LENGTH:
        return f"名称长度不能超过 {MAX_NAME_LENGTH} 个字符"
    return None
