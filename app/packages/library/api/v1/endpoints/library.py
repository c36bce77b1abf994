"""素材库路由：目录树查询与目录/图片变更。

变更类接口先经过角色能力校验，再交给素材库服务；服务返回的失败结果
统一转成 ``AppException``，由全局处理器渲染为 ``{msg, data, code}``。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from app.packages.library.api.v1.schemas.library import (
    DeleteBody,
    FolderCreateBody,
    FoldersResponse,
    ItemResponse,
    ItemsResponse,
    MoveBody,
    MutationResponse,
    RenameBody,
    TreeResponse,
)
from app.packages.library.core.constants import HTTP_STATUS_NOT_FOUND
from app.packages.library.core.dependencies import get_library_service, require
from app.packages.library.core.enums import CapabilityEnum, SortFieldEnum, SortOrderEnum
from app.packages.library.core.exceptions import AppException, raise_for_result
from app.packages.library.core.logger import logger
from app.packages.library.core.responses import MutationResult, create_response
from app.packages.library.services.library_service import LibraryService
from app.packages.library.tree.errors import NotFoundError
from app.packages.library.tree.paths import norm_abs_path

router = APIRouter(prefix="/library", tags=["library"])


def _not_found(exc: NotFoundError) -> AppException:
    return AppException(exc.message, HTTP_STATUS_NOT_FOUND, MutationResult.failure(exc.kind, exc.message).to_dict())


def _respond(result: MutationResult) -> dict:
    raise_for_result(result)
    return create_response(result.message, result.to_dict())


# ----------------------------
# 查询
# ----------------------------
@router.get("/tree", response_model=TreeResponse)
def get_tree(service: LibraryService = Depends(get_library_service)):
    return create_response("获取目录树成功", service.tree_view())


@router.get("/items", response_model=ItemsResponse)
def list_items(
    path: Optional[str] = Query("/"),
    search: Optional[str] = Query(None),
    order_by: SortFieldEnum = Query(SortFieldEnum.NAME, alias="orderBy"),
    order: Optional[SortOrderEnum] = Query(None),
    service: LibraryService = Depends(get_library_service),
):
    """列出某个文件夹的直接子项；带 ``search`` 时改为全库检索。"""
    if search and search.strip():
        nodes = service.search(search, order_by=order_by, order=order)
        return create_response("检索成功", {"search": search, "items": [n.to_dict() for n in nodes]})
    try:
        nodes = service.list_children(path, order_by=order_by, order=order)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return create_response("获取列表成功", {"currentPath": norm_abs_path(path), "items": [n.to_dict() for n in nodes]})


@router.get("/folders", response_model=FoldersResponse)
def list_folders(service: LibraryService = Depends(get_library_service)):
    """可选的目标文件夹（含根目录），用于“移动到”选择。"""
    folders = [{"id": n.id or None, "name": n.name or "/", "path": n.path} for n in service.folder_paths()]
    return create_response("获取文件夹成功", folders)


@router.get("/items/{item_id}", response_model=ItemResponse)
def get_item(item_id: str, service: LibraryService = Depends(get_library_service)):
    try:
        node = service.get_item(item_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return create_response("获取条目成功", node.to_dict())


@router.get("/items/{item_id}/content")
def get_item_content(item_id: str, service: LibraryService = Depends(get_library_service)):
    try:
        return service.open_content(item_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc


# ----------------------------
# 变更
# ----------------------------
@router.post("/folders", response_model=MutationResponse)
def create_folder(
    body: FolderCreateBody,
    service: LibraryService = Depends(get_library_service),
    _: frozenset = Depends(require(CapabilityEnum.CREATE_FOLDER)),
):
    return _respond(service.create_folder(body.name, body.parentPath))


@router.post("/files", response_model=MutationResponse)
def upload_file(
    file: UploadFile = File(...),
    path: str = Form("/"),
    service: LibraryService = Depends(get_library_service),
    _: frozenset = Depends(require(CapabilityEnum.UPLOAD)),
):
    data = file.file.read()
    logger.info("library.upload name=%s size=%s path=%s", file.filename, len(data), path)
    return _respond(service.upload_leaf(file.filename or "", data, path, content_type=file.content_type))


@router.patch("/items/{item_id}", response_model=MutationResponse)
def rename_item(
    item_id: str,
    body: RenameBody,
    service: LibraryService = Depends(get_library_service),
    _: frozenset = Depends(require(CapabilityEnum.RENAME)),
):
    return _respond(service.rename(item_id, body.name))


@router.post("/items/move", response_model=MutationResponse)
def move_items(
    body: MoveBody,
    service: LibraryService = Depends(get_library_service),
    _: frozenset = Depends(require(CapabilityEnum.MOVE)),
):
    return _respond(service.move(body.ids, body.destinationPath))


@router.delete("/items", response_model=MutationResponse)
def delete_items(
    body: DeleteBody,
    service: LibraryService = Depends(get_library_service),
    _: frozenset = Depends(require(CapabilityEnum.DELETE)),
):
    return _respond(service.delete(body.ids))


@router.post("/sync", response_model=MutationResponse)
def sync_from_directory(
    service: LibraryService = Depends(get_library_service),
    _: frozenset = Depends(require(CapabilityEnum.SYNC)),
):
    """扫描配置的本地图片目录，把尚未入库的目录与图片导入素材库。"""
    return _respond(service.import_directory())
