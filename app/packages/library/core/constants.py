"""常量定义：HTTP 状态码、角色、能力映射与图片类型。"""

from fastapi import status

from app.packages.library.core.enums import CapabilityEnum, ErrorKind, RoleEnum

HTTP_STATUS_OK = status.HTTP_200_OK
HTTP_STATUS_BAD_REQUEST = status.HTTP_400_BAD_REQUEST
HTTP_STATUS_FORBIDDEN = status.HTTP_403_FORBIDDEN
HTTP_STATUS_NOT_FOUND = status.HTTP_404_NOT_FOUND
HTTP_STATUS_CONFLICT = status.HTTP_409_CONFLICT
HTTP_STATUS_CONTENT_TOO_LARGE = status.HTTP_413_CONTENT_TOO_LARGE
HTTP_STATUS_INTERNAL_ERROR = status.HTTP_500_INTERNAL_SERVER_ERROR

ADMIN_ROLE = RoleEnum.ADMIN.value
UPLOADER_ROLE = RoleEnum.UPLOADER.value

# 每种变更操作允许的角色
CAPABILITY_ROLES: dict[CapabilityEnum, frozenset[str]] = {
    CapabilityEnum.CREATE_FOLDER: frozenset({ADMIN_ROLE}),
    CapabilityEnum.UPLOAD: frozenset({ADMIN_ROLE, UPLOADER_ROLE}),
    CapabilityEnum.RENAME: frozenset({ADMIN_ROLE}),
    CapabilityEnum.MOVE: frozenset({ADMIN_ROLE}),
    CapabilityEnum.DELETE: frozenset({ADMIN_ROLE}),
    CapabilityEnum.SYNC: frozenset({ADMIN_ROLE}),
}

ERROR_KIND_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: HTTP_STATUS_NOT_FOUND,
    ErrorKind.DUPLICATE_PATH: HTTP_STATUS_CONFLICT,
    ErrorKind.CIRCULAR_MOVE: HTTP_STATUS_BAD_REQUEST,
    ErrorKind.INVALID_NAME: HTTP_STATUS_BAD_REQUEST,
    ErrorKind.INVALID_CONTENT: HTTP_STATUS_BAD_REQUEST,
    ErrorKind.FORBIDDEN: HTTP_STATUS_FORBIDDEN,
    ErrorKind.PERSISTENCE_FAILURE: HTTP_STATUS_INTERNAL_ERROR,
}

# 目录扫描时识别为图片叶子节点的扩展名
IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".avif"})
# 可由 Pillow 读取尺寸的扩展名（SVG 为矢量图，不读取尺寸）
RASTER_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif"})
