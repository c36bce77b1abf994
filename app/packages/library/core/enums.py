"""枚举定义：约束节点类型、错误类型、角色与操作能力的可选值。"""

from enum import Enum


class NodeKind(str, Enum):
    FOLDER = "folder"
    LEAF = "image"


class ErrorKind(str, Enum):
    """命名空间操作失败的分类，取值即为对外返回的 ``errorKind``。"""

    NOT_FOUND = "NotFound"
    DUPLICATE_PATH = "DuplicatePath"
    CIRCULAR_MOVE = "CircularMove"
    INVALID_NAME = "InvalidName"
    INVALID_CONTENT = "InvalidContent"
    FORBIDDEN = "Forbidden"
    PERSISTENCE_FAILURE = "PersistenceFailure"


class RoleEnum(str, Enum):
    ADMIN = "admin"
    UPLOADER = "uploader"
    VIEWER = "viewer"


class CapabilityEnum(str, Enum):
    """需要授权的变更操作。"""

    CREATE_FOLDER = "create_folder"
    UPLOAD = "upload"
    RENAME = "rename"
    MOVE = "move"
    DELETE = "delete"
    SYNC = "sync"


class SortFieldEnum(str, Enum):
    NAME = "name"
    SIZE = "size"


class SortOrderEnum(str, Enum):
    ASC = "asc"
    DESC = "desc"
