"""日志配置模块：终端彩色输出、文件按天滚动，并为每条日志附带请求 ID。"""

import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Optional

from .config import Settings, get_settings

_FORMATTER_PATH = "app.packages.library.core.logger"
_PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


class _TZFormatter(logging.Formatter):
    """Formatter that renders timestamps in Settings.timezone."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: D401
        dt = datetime.fromtimestamp(record.created, get_settings().timezone_info)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat(sep=" ", timespec="milliseconds")


class ColorFormatter(_TZFormatter):
    """ANSI 彩色格式化器：按日志级别着色，非终端输出时自动关闭。"""

    RESET = "\033[0m"
    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }

    def __init__(
        self,
        fmt: str,
        datefmt: Optional[str] = None,
        style: str = "%",
        use_colors: Optional[bool] = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self.use_colors = sys.stderr.isatty() if use_colors is None else use_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.COLORS.get(record.levelno) if self.use_colors else None
        return f"{color}{message}{self.RESET}" if color else message


class JsonFormatter(_TZFormatter):
    """Structured JSON formatter; ``extra`` fields named in ``EXTRA_KEYS`` are kept."""

    EXTRA_KEYS = ("operation", "error_kind", "path", "target_id")

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt=None),
            "logger": record.name,
            "level": record.levelname,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for key in self.EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Injects request_id from contextvars into every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.request_id = _request_id_ctx.get() or "-"
        return True


def build_logging_config(settings: Settings) -> dict[str, Any]:
    """生成 ``dictConfig`` 所需的配置字典。"""
    formatter_name = "json" if settings.log_json else "standard"
    handlers = ["default", "file"]
    logger_entry = {"handlers": handlers, "level": settings.log_level, "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"()": f"{_FORMATTER_PATH}.ColorFormatter", "format": _PLAIN_FORMAT},
            "plain": {"()": f"{_FORMATTER_PATH}._TZFormatter", "format": _PLAIN_FORMAT},
            "json": {"()": f"{_FORMATTER_PATH}.JsonFormatter"},
        },
        "filters": {"request_id": {"()": f"{_FORMATTER_PATH}.RequestIdFilter"}},
        "handlers": {
            "default": {
                "level": settings.log_level,
                "class": "logging.StreamHandler",
                "formatter": formatter_name,
                "filters": ["request_id"],
            },
            "file": {
                "level": settings.log_level,
                "class": "logging.handlers.TimedRotatingFileHandler",
                "formatter": "json" if settings.log_json else "plain",
                "filename": str(settings.log_file_path),
                "when": "midnight",
                "backupCount": 14,
                "encoding": "utf-8",
                "delay": True,
                "filters": ["request_id"],
            },
        },
        "loggers": {
            "uvicorn": dict(logger_entry),
            "uvicorn.error": dict(logger_entry),
            "uvicorn.access": dict(logger_entry),
            "app": dict(logger_entry),
            # SQL 日志由 DATABASE_ECHO 控制，这里只保留告警以上
            "sqlalchemy.engine": {"handlers": handlers, "level": "WARNING", "propagate": False},
        },
        "root": {"handlers": handlers, "level": settings.log_level},
    }


def setup_logging() -> None:
    """初始化日志系统，确保项目所有模块使用统一的输出格式与级别。"""
    settings = get_settings()
    settings.log_directory.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(settings))


logger = logging.getLogger("app")


def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)
