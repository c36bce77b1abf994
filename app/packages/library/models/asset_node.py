"""素材节点表：目录与图片叶子节点合并存储。

存储规则：
- path：以 '/' 开头，不以 '/' 结尾；根目录不入库；全表唯一；
- parent_id：层级关系的唯一依据，顶层节点为 NULL；path 是其派生缓存；
- kind：folder / image；
- 对于图片：content_ref/size_bytes/width/height/mime_type 有意义，目录则为空。
"""

from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.library.models.base import Base, TimestampMixin


class AssetNode(TimestampMixin, Base):
    __tablename__ = "asset_nodes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    kind: Mapped[str] = mapped_column(String(16), index=True)
    # 示例："/Products"、"/Products/Gadgets/laptop.jpg"
    path: Mapped[str] = mapped_column(String(1024), unique=True, index=True)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("asset_nodes.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    content_ref: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
