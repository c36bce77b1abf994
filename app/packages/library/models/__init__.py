"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.library.models.asset_node import AssetNode

__all__ = ["AssetNode"]
