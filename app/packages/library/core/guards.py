"""授权闸门：在调用素材库服务之前按角色校验操作能力。

集中维护“哪个角色可以执行哪种变更”的判定，避免在各个路由里散落硬编码。
引擎本身不做授权判断，拒绝时返回的错误类型为 ``Forbidden``。
"""

from __future__ import annotations

from typing import Iterable, Optional

from app.packages.library.core.constants import CAPABILITY_ROLES, HTTP_STATUS_FORBIDDEN
from app.packages.library.core.enums import CapabilityEnum
from app.packages.library.core.exceptions import AppException
from app.packages.library.core.logger import logger
from app.packages.library.core.responses import MutationResult
from app.packages.library.tree.errors import ForbiddenError


def parse_roles(raw: Optional[str]) -> frozenset[str]:
    return frozenset(token.strip().lower() for token in (raw or "").split(",") if token.strip())


def has_capability(roles: Iterable[str], capability: CapabilityEnum) -> bool:
    allowed = CAPABILITY_ROLES.get(capability, frozenset())
    return any(role in allowed for role in roles)


def require_capability(roles: Iterable[str], capability: CapabilityEnum) -> None:
    roles = frozenset(roles)
    if has_capability(roles, capability):
        return
    logger.warning("Forbidden %s for roles=%s", capability.value, sorted(roles) or "-")
    exc = ForbiddenError("无权执行该操作")
    result = MutationResult.failure(exc.kind, exc.message)
    raise AppException(result.message, HTTP_STATUS_FORBIDDEN, result.to_dict()) from exc
