"""素材库服务：持有当前树快照，串行执行变更并与行存储、内容存储保持同步。

每次变更的流程：
1. 引擎在当前快照上计算新快照与行变更集（校验失败直接返回，快照不变）；
2. 需要时先写入内容（上传）；
3. 行变更集在一个事务中落库；
4. 落库成功后才发布新快照；任一步失败返回 ``PersistenceFailure``，
   已写入的内容会被清理，调用方看到的始终是与数据库一致的树。

所有变更由一把锁串行化，同一时刻只有一个变更在执行；读取在两次变更之间进行。
"""

from __future__ import annotations

import mimetypes
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.packages.library.core.config import Settings, get_settings
from app.packages.library.core.enums import SortFieldEnum, SortOrderEnum
from app.packages.library.core.logger import logger
from app.packages.library.core.responses import MutationResult
from app.packages.library.crud.asset_node import asset_node_crud, row_to_node
from app.packages.library.db import session as db_session
from app.packages.library.services.image_probe import probe_image
from app.packages.library.services.scan_service import scan_directory
from app.packages.library.services.storage_backends import ContentStore, build_content_store, new_content_ref
from app.packages.library.tree.engine import ChangeSet, Mutation, MutationEngine
from app.packages.library.tree.errors import InvalidContentError, NamespaceError, NotFoundError, PersistenceError
from app.packages.library.tree.model import TreeModel
from app.packages.library.tree.node import Node
from app.packages.library.tree.paths import norm_abs_path, parent_of
from app.packages.library.tree.presentation import search, sort_nodes

Stage = Callable[[Mutation], None]


def _serialize(value: Any) -> Any:
    if isinstance(value, Node):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    return value


class LibraryService:
    def __init__(
        self,
        *,
        session_factory: Optional[Callable[[], Session]] = None,
        content_store: Optional[ContentStore] = None,
        engine: Optional[MutationEngine] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._session_factory = session_factory
        self._content_store = content_store
        self._engine = engine or MutationEngine()
        self._settings = settings
        self._lock = threading.RLock()
        self._tree: Optional[TreeModel] = None

    # ----------------------------
    # 协作对象
    # ----------------------------
    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def content_store(self) -> ContentStore:
        if self._content_store is None:
            self._content_store = build_content_store(self.settings)
        return self._content_store

    def _session(self) -> Session:
        # 运行时读取 SessionLocal，测试可替换数据库引擎
        factory = self._session_factory or db_session.SessionLocal
        return factory()

    # ----------------------------
    # 快照
    # ----------------------------
    def load(self) -> TreeModel:
        """从行存储全量加载并校验不变量，替换当前快照。"""
        with self._lock:
            with self._session() as db:
                rows = asset_node_crud.list_all(db)
                tree = TreeModel(row_to_node(row) for row in rows)
            tree.validate()
            self._tree = tree
            logger.info("Library hydrated with %s nodes", len(tree))
            return tree

    reload = load

    def snapshot(self) -> TreeModel:
        with self._lock:
            if self._tree is None:
                return self.load()
            return self._tree

    # ----------------------------
    # 查询
    # ----------------------------
    def tree_view(self) -> List[Dict[str, Any]]:
        return self.snapshot().to_nested()

    def get_item(self, node_id: str) -> Node:
        node = self.snapshot().find_by_id(node_id)
        if node is None:
            raise NotFoundError(f"条目不存在：{node_id}", target_id=node_id)
        return node

    def list_children(
        self,
        path: Optional[str],
        *,
        order_by: SortFieldEnum | str | None = None,
        order: SortOrderEnum | str | None = None,
    ) -> List[Node]:
        tree = self.snapshot()
        normalized = norm_abs_path(path)
        folder = tree.find_by_path(normalized)
        if folder is None or not folder.is_folder:
            raise NotFoundError(f"文件夹不存在：{normalized}", path=normalized)
        return sort_nodes(tree.children_of(normalized), order_by, order)

    def search(
        self,
        query: Optional[str],
        *,
        order_by: SortFieldEnum | str | None = None,
        order: SortOrderEnum | str | None = None,
    ) -> List[Node]:
        return sort_nodes(search(self.snapshot(), query), order_by, order)

    def folder_paths(self) -> List[Node]:
        return self.snapshot().all_folder_paths()

    def open_content(self, node_id: str) -> Response:
        node = self.get_item(node_id)
        if not node.is_leaf or not node.content_ref:
            raise NotFoundError(f"条目没有可下载的内容：{node.path}", path=node.path, target_id=node.id)
        return self.content_store.open_response(node.content_ref, filename=node.name, media_type=node.mime_type)

    # ----------------------------
    # 变更流程
    # ----------------------------
    def _persist(self, changes: ChangeSet) -> None:
        if changes.is_empty:
            return
        with self._session() as db:
            asset_node_crud.apply_changes(db, changes)

    def _run(
        self,
        operation: str,
        message: str,
        compute: Callable[[TreeModel], Mutation],
        *,
        stage: Optional[Stage] = None,
        unstage: Optional[Stage] = None,
        after_commit: Optional[Callable[[Mutation], Dict[str, Any]]] = None,
    ) -> MutationResult:
        with self._lock:
            current = self.snapshot()
            try:
                mutation = compute(current)
            except NamespaceError as exc:
                logger.warning(
                    "%s rejected: %s %s",
                    operation,
                    exc.kind.value,
                    exc.message,
                    extra={"operation": operation, "error_kind": exc.kind.value, "path": exc.path, "target_id": exc.target_id},
                )
                return self._failure(exc)

            try:
                if stage is not None:
                    stage(mutation)
                self._persist(mutation.changes)
            except Exception:
                logger.exception("%s failed while persisting", operation, extra={"operation": operation})
                if unstage is not None:
                    self._safe_unstage(operation, unstage, mutation)
                return self._failure(PersistenceError("保存失败，操作已撤销"))

            self._tree = mutation.tree
            details = dict(mutation.details)
            if after_commit is not None:
                details.update(after_commit(mutation))
            logger.info(
                "%s committed: +%s ~%s -%s",
                operation,
                len(mutation.changes.inserted),
                len(mutation.changes.updated),
                len(mutation.changes.deleted),
                extra={"operation": operation},
            )
            return MutationResult.success(message, **_serialize(details))

    @staticmethod
    def _failure(exc: NamespaceError) -> MutationResult:
        details: Dict[str, Any] = {}
        if exc.path is not None:
            details["path"] = exc.path
        if exc.target_id is not None:
            details["id"] = exc.target_id
        if exc.failures:
            details["failures"] = exc.failures
        return MutationResult.failure(exc.kind, exc.message, **details)

    @staticmethod
    def _safe_unstage(operation: str, unstage: Stage, mutation: Mutation) -> None:
        try:
            unstage(mutation)
        except Exception:
            logger.exception("%s: failed to clean up staged content", operation)

    # ----------------------------
    # 变更操作
    # ----------------------------
    def create_folder(self, name: str, parent_path: Optional[str]) -> MutationResult:
        return self._run(
            "create_folder",
            "文件夹创建成功",
            lambda tree: self._engine.create_folder(tree, name, parent_path),
        )

    def register_leaf(
        self,
        name: str,
        parent_path: Optional[str],
        *,
        content_ref: str,
        size_bytes: int,
        width: Optional[int] = None,
        height: Optional[int] = None,
        mime_type: Optional[str] = None,
    ) -> MutationResult:
        """登记一份已写入内容存储的图片。"""
        return self._run(
            "register_leaf",
            "图片登记成功",
            lambda tree: self._engine.register_leaf(
                tree,
                name,
                parent_path,
                content_ref=content_ref,
                size_bytes=size_bytes,
                width=width,
                height=height,
                mime_type=mime_type,
            ),
        )

    def _check_upload(self, filename: str, data: bytes, content_type: Optional[str]) -> str:
        settings = self.settings
        mime = (content_type or mimetypes.guess_type(filename or "")[0] or "").lower()
        if mime not in settings.allowed_image_types:
            raise InvalidContentError(f"不支持的文件类型：{mime or '未知'}", path=filename)
        if not data:
            raise InvalidContentError("文件内容为空", path=filename)
        if len(data) > settings.max_upload_bytes:
            raise InvalidContentError(
                f"文件大小超过限制（{settings.max_upload_bytes // (1024 * 1024)}MB）", path=filename
            )
        return mime

    def upload_leaf(
        self,
        filename: str,
        data: bytes,
        parent_path: Optional[str],
        *,
        content_type: Optional[str] = None,
    ) -> MutationResult:
        """上传图片：校验类型与大小，写入内容后登记节点；路径已存在时拒绝且不写入内容。"""
        try:
            mime = self._check_upload(filename, data, content_type)
        except InvalidContentError as exc:
            logger.warning("upload rejected: %s", exc.message, extra={"operation": "upload", "path": filename})
            result = self._failure(exc)
            if len(data) > self.settings.max_upload_bytes:
                result.details["tooLarge"] = True
            return result

        width, height = probe_image(data, filename)
        # 名称非法时引擎会先拒绝，不会走到写入内容这一步
        ref = new_content_ref(filename)
        store = self.content_store
        return self._run(
            "upload",
            "文件上传成功",
            lambda tree: self._engine.register_leaf(
                tree,
                filename,
                parent_path,
                content_ref=ref,
                size_bytes=len(data),
                width=width,
                height=height,
                mime_type=mime,
            ),
            stage=lambda _m: store.put(ref, data, content_type=mime),
            unstage=lambda _m: store.delete(ref),
        )

    def rename(self, target_id: str, new_name: str) -> MutationResult:
        return self._run(
            "rename",
            "重命名成功",
            lambda tree: self._engine.rename(tree, target_id, new_name),
        )

    def move(self, target_ids: Iterable[str], destination_path: Optional[str]) -> MutationResult:
        ids = list(target_ids)
        return self._run(
            "move",
            "移动成功",
            lambda tree: self._engine.move(tree, ids, destination_path),
        )

    def delete(self, target_ids: Iterable[str]) -> MutationResult:
        """级联删除；行删除提交后再清理内容，清理失败的引用记入 ``orphanedContentRefs``。"""
        ids = list(target_ids)

        def _cleanup(mutation: Mutation) -> Dict[str, Any]:
            refs = mutation.changes.removed_content_refs
            orphaned = self.content_store.delete_many(refs) if refs else []
            if orphaned:
                logger.warning("delete left %s orphaned content objects", len(orphaned), extra={"operation": "delete"})
            return {"orphanedContentRefs": orphaned}

        return self._run(
            "delete",
            "删除成功",
            lambda tree: self._engine.delete(tree, ids),
            after_commit=_cleanup,
        )

    def import_directory(self, root: Optional[str | Path] = None) -> MutationResult:
        """扫描本地图片目录，把尚未入库的目录与图片导入命名空间（内容复制到内容存储）。"""
        scan = scan_directory(root or self.settings.scan_root_path)
        staged: List[tuple[str, Path, Optional[str]]] = []
        store = self.content_store

        def _compute(tree: TreeModel) -> Mutation:
            staged.clear()
            inserted: List[Node] = []
            skipped = scan.skipped
            existing = 0
            for node in scan.tree.flatten():
                current = tree.find_by_path(node.path)
                if current is not None:
                    if current.kind != node.kind:
                        skipped += 1
                    else:
                        existing += 1
                    continue
                try:
                    if node.is_folder:
                        step = self._engine.create_folder(tree, node.name, parent_of(node.path))
                    else:
                        ref = new_content_ref(node.name)
                        step = self._engine.register_leaf(
                            tree,
                            node.name,
                            parent_of(node.path),
                            content_ref=ref,
                            size_bytes=node.size_bytes,
                            width=node.width,
                            height=node.height,
                            mime_type=node.mime_type,
                        )
                        staged.append((ref, scan.source_of(node), node.mime_type))
                except NamespaceError:
                    # 父目录被同名图片占用等情况，跳过该条目
                    skipped += 1
                    continue
                tree = step.tree
                inserted.extend(step.changes.inserted)
            return Mutation(
                tree,
                ChangeSet(inserted=inserted),
                {"scanned": scan.scanned, "inserted": len(inserted), "existing": existing, "skipped": skipped},
            )

        def _stage(_m: Mutation) -> None:
            for ref, source, mime in staged:
                store.put(ref, source.read_bytes(), content_type=mime)

        def _unstage(_m: Mutation) -> None:
            store.delete_many(ref for ref, _, _ in staged)

        return self._run("import_directory", "同步完成", _compute, stage=_stage, unstage=_unstage)


library_service = LibraryService()
