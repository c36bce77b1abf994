"""通用响应封装模型。"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class ResponseEnvelope(BaseModel, Generic[T]):
    """系统统一的响应外层结构。"""

    msg: str
    data: Optional[T] = None
    code: int
    meta: Optional[Dict[str, Any]] = None


class MutationResultOut(BaseModel):
    """变更结果：``ok`` 为真时附带操作细节，为假时附带 ``errorKind`` 与 ``message``。"""

    model_config = ConfigDict(extra="allow")

    ok: bool
    errorKind: Optional[str] = None
    message: Optional[str] = None
    failures: Optional[List[Dict[str, Any]]] = None
