"""素材库业务包：图片素材的目录命名空间（树模型、变更引擎与其持久化）。"""

from app.packages.types import AppPackage

from .api.v1 import api_router
from .core.config import get_settings
from .core.exceptions import generic_exception_handler, http_exception_handler
from .core.logger import logger, setup_logging
from .core.responses import create_response
from .db.init_db import init_db
from .services.library_service import library_service

package = AppPackage(
    name="library",
    api_router=api_router,
    get_settings=get_settings,
    setup_logging=setup_logging,
    logger=logger,
    init_db=init_db,
    create_response=create_response,
    http_exception_handler=http_exception_handler,
    generic_exception_handler=generic_exception_handler,
    on_startup=library_service.load,
)

__all__ = ["package", "api_router", "get_settings"]
