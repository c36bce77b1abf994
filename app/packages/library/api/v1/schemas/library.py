"""素材库 - 目录/图片操作请求/响应模型。"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.packages.library.api.v1.schemas.common import MutationResultOut, ResponseEnvelope


class NodeOut(BaseModel):
    id: str
    name: str
    type: str
    path: str
    parentId: Optional[str] = None
    contentRef: Optional[str] = None
    sizeBytes: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    mimeType: Optional[str] = None


class TreeNodeOut(NodeOut):
    children: Optional[List["TreeNodeOut"]] = None


class FolderOut(BaseModel):
    id: Optional[str] = None
    name: str
    path: str


class FolderCreateBody(BaseModel):
    name: str = Field(..., min_length=1)
    parentPath: str = "/"


class RenameBody(BaseModel):
    name: str = Field(..., min_length=1)


class MoveBody(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    destinationPath: str = "/"


class DeleteBody(BaseModel):
    ids: List[str] = Field(..., min_length=1)

    @field_validator("ids")
    @classmethod
    def _strip_blank(cls, value: List[str]) -> List[str]:
        cleaned = [item for item in value if item and item.strip()]
        if not cleaned:
            raise ValueError("ids 不能为空")
        return cleaned


class ItemsData(BaseModel):
    currentPath: Optional[str] = None
    search: Optional[str] = None
    items: List[NodeOut]


TreeResponse = ResponseEnvelope[List[TreeNodeOut]]
ItemsResponse = ResponseEnvelope[ItemsData]
ItemResponse = ResponseEnvelope[NodeOut]
FoldersResponse = ResponseEnvelope[List[FolderOut]]
MutationResponse = ResponseEnvelope[MutationResultOut]
