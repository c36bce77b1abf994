"""命名空间引擎：树模型、变更引擎与选择状态机，不依赖 Web 框架与数据库。"""

from app.packages.library.tree.engine import ChangeSet, Mutation, MutationEngine
from app.packages.library.tree.errors import (
    CircularMoveError,
    DuplicatePathError,
    ForbiddenError,
    InvalidContentError,
    InvalidNameError,
    NamespaceError,
    NotFoundError,
    PersistenceError,
    TreeIntegrityError,
)
from app.packages.library.tree.model import TreeModel
from app.packages.library.tree.node import ROOT, Node
from app.packages.library.tree.selection import SelectionState

__all__ = [
    "ChangeSet",
    "CircularMoveError",
    "DuplicatePathError",
    "ForbiddenError",
    "InvalidContentError",
    "InvalidNameError",
    "Mutation",
    "MutationEngine",
    "NamespaceError",
    "Node",
    "NotFoundError",
    "PersistenceError",
    "ROOT",
    "SelectionState",
    "TreeIntegrityError",
    "TreeModel",
]
