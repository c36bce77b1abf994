"""异常处理模块：定义统一的业务异常与响应格式。"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.packages.library.core.constants import (
    ERROR_KIND_STATUS,
    HTTP_STATUS_INTERNAL_ERROR,
    HTTP_STATUS_CONTENT_TOO_LARGE,
)
from app.packages.library.core.logger import logger
from app.packages.library.core.responses import MutationResult


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data


def raise_for_result(result: MutationResult) -> MutationResult:
    """失败的变更结果转为 ``AppException``，HTTP 状态码由错误类型决定。"""
    if result.ok:
        return result
    code = ERROR_KIND_STATUS.get(result.error_kind, HTTP_STATUS_INTERNAL_ERROR)
    if result.details.get("tooLarge"):
        code = HTTP_STATUS_CONTENT_TOO_LARGE
    raise AppException(result.message, code, result.to_dict())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = {"msg": exc.detail, "data": getattr(exc, "data", None), "code": exc.status_code}
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：将未捕获异常转换为标准的 500 响应结构。"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    payload = {
        "msg": "服务器内部错误",
        "data": None,
        "code": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
