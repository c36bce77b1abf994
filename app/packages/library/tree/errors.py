"""Namespace error hierarchy raised by the tree model and the mutation engine.

Every error carries an :class:`ErrorKind` so the service layer can turn it
into a ``{ok: false, errorKind, message}`` result without inspecting types.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.packages.library.core.enums import ErrorKind


class NamespaceError(Exception):
    kind: ErrorKind = ErrorKind.PERSISTENCE_FAILURE

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        target_id: Optional[str] = None,
        failures: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.target_id = target_id
        self.failures = failures or []

    def to_failure(self) -> Dict[str, Any]:
        """Describe this error as one entry of a batch ``failures`` list."""
        return {
            "id": self.target_id,
            "path": self.path,
            "errorKind": self.kind.value,
            "message": self.message,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, path={self.path!r}, target_id={self.target_id!r})"


class NotFoundError(NamespaceError):
    kind = ErrorKind.NOT_FOUND


class DuplicatePathError(NamespaceError):
    kind = ErrorKind.DUPLICATE_PATH


class CircularMoveError(NamespaceError):
    kind = ErrorKind.CIRCULAR_MOVE


class InvalidNameError(NamespaceError):
    kind = ErrorKind.INVALID_NAME


class InvalidContentError(NamespaceError):
    kind = ErrorKind.INVALID_CONTENT


class ForbiddenError(NamespaceError):
    kind = ErrorKind.FORBIDDEN


class PersistenceError(NamespaceError):
    kind = ErrorKind.PERSISTENCE_FAILURE


class TreeIntegrityError(Exception):
    """A snapshot violates one of the structural invariants.

    Raised while hydrating from a backing store; never the result of a
    validated mutation.
    """

    def __init__(self, violations: List[str]) -> None:
        super().__init__("; ".join(violations) or "tree integrity violated")
        self.violations = violations
