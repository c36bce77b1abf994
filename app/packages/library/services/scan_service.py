"""目录扫描：把本地图片目录构建为一棵树模型。

规则：
- 跳过以 '.' 开头的文件与目录；
- 只有图片扩展名（.jpg .jpeg .png .gif .webp .svg .avif）成为叶子节点；
- 节点 id 与 content_ref 均为相对扫描根的路径；
- 位图读取宽高，SVG 不读取；
- 通过已访问集合防止符号链接造成的环路。
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from app.packages.library.core.constants import IMAGE_EXTENSIONS
from app.packages.library.core.enums import NodeKind
from app.packages.library.core.logger import logger
from app.packages.library.services.image_probe import probe_file
from app.packages.library.tree.model import TreeModel
from app.packages.library.tree.node import Node
from app.packages.library.tree.paths import MAX_PATH_LENGTH, join_path, name_problem


@dataclass
class ScanResult:
    tree: TreeModel
    root: Path
    scanned: int = 0
    skipped: int = 0

    def source_of(self, node: Node) -> Path:
        """叶子节点对应的本地文件。"""
        return self.root / (node.content_ref or node.id)


def _is_image(name: str) -> bool:
    return Path(name).suffix.lower() in IMAGE_EXTENSIONS


def scan_directory(root: str | Path) -> ScanResult:
    base = Path(root).resolve()
    if not base.is_dir():
        logger.warning("Scan root %s does not exist or is not a directory", base)
        return ScanResult(tree=TreeModel(), root=base)

    nodes: List[Node] = []
    scanned = 0
    skipped = 0
    visited: set[Path] = {base}
    # (目录绝对路径, 该目录在命名空间中的路径, 对应节点 id)
    pending: List[Tuple[Path, str, Optional[str]]] = [(base, "/", None)]

    while pending:
        directory, ns_path, parent_id = pending.pop()
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            logger.warning("Skipping unreadable directory %s: %s", directory, exc)
            skipped += 1
            continue

        for entry in entries:
            name = entry.name
            if name.startswith("."):
                continue
            child_path = join_path(ns_path, name)
            if name_problem(name) or len(child_path) > MAX_PATH_LENGTH:
                skipped += 1
                continue
            rel = entry.relative_to(base).as_posix()
            try:
                if entry.is_dir():
                    real = entry.resolve()
                    if real in visited:
                        continue
                    visited.add(real)
                    nodes.append(Node(id=rel, name=name, kind=NodeKind.FOLDER, path=child_path, parent_id=parent_id))
                    pending.append((entry, child_path, rel))
                elif entry.is_file() and _is_image(name):
                    scanned += 1
                    width, height = probe_file(entry)
                    nodes.append(
                        Node(
                            id=rel,
                            name=name,
                            kind=NodeKind.LEAF,
                            path=child_path,
                            parent_id=parent_id,
                            content_ref=rel,
                            size_bytes=entry.stat().st_size,
                            width=width,
                            height=height,
                            mime_type=mimetypes.guess_type(name)[0],
                        )
                    )
            except OSError as exc:
                logger.warning("Skipping %s: %s", entry, exc)
                skipped += 1

    return ScanResult(tree=TreeModel(nodes), root=base, scanned=scanned, skipped=skipped)
