"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from collections.abc import Callable

from fastapi import Depends, Request

from app.packages.library.core.config import get_settings
from app.packages.library.core.enums import CapabilityEnum
from app.packages.library.core.guards import parse_roles, require_capability
from app.packages.library.services.library_service import LibraryService, library_service


def get_library_service() -> LibraryService:
    return library_service


def get_current_roles(request: Request) -> frozenset[str]:
    """读取上游网关写入的角色请求头；缺失时视为无角色（只读）。"""
    return parse_roles(request.headers.get(get_settings().roles_header))


def require(capability: CapabilityEnum) -> Callable[..., frozenset[str]]:
    """构造一个在路由执行前校验能力的依赖。"""

    def _checker(roles: frozenset[str] = Depends(get_current_roles)) -> frozenset[str]:
        require_capability(roles, capability)
        return roles

    return _checker
