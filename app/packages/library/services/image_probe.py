"""图片尺寸探测：基于 Pillow 读取位图宽高，矢量图与无法解析的数据返回 None。"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from app.packages.library.core.constants import RASTER_EXTENSIONS
from app.packages.library.core.logger import logger

Dimensions = Tuple[Optional[int], Optional[int]]


def probe_image(data: bytes, filename: str) -> Dimensions:
    if Path(filename or "").suffix.lower() not in RASTER_EXTENSIONS:
        return None, None
    try:
        # 只解析文件头，不解码像素
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("Failed to read image dimensions for %s: %s", filename, exc)
        return None, None
    return int(width), int(height)


def probe_file(path: Path) -> Dimensions:
    if path.suffix.lower() not in RASTER_EXTENSIONS:
        return None, None
    try:
        with Image.open(path) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("Failed to read image dimensions for %s: %s", path, exc)
        return None, None
    return int(width), int(height)
