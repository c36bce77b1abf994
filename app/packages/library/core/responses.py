"""响应封装：统一返回结构 ``{msg, data, code}`` 与变更结果 ``{ok, ...}``。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from app.packages.library.core.constants import HTTP_STATUS_OK
from app.packages.library.core.enums import ErrorKind


def create_response(msg: str, data: Any = None, code: int = HTTP_STATUS_OK) -> dict[str, Any]:
    """按照 ``msg``、``data``、``code`` 组合出统一响应体。"""
    return {"msg": msg, "data": data, "code": code}


@dataclass
class MutationResult:
    """变更操作对调用方的结果：成功携带细节，失败携带错误类型与描述。"""

    ok: bool
    message: str = ""
    error_kind: Optional[ErrorKind] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, message: str, **details: Any) -> "MutationResult":
        return cls(ok=True, message=message, details=details)

    @classmethod
    def failure(cls, error_kind: ErrorKind, message: str, **details: Any) -> "MutationResult":
        return cls(ok=False, message=message, error_kind=error_kind, details=details)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, **self.details}
        payload: Dict[str, Any] = {
            "ok": False,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
        }
        payload.update(self.details)
        return payload
