"""API v1 汇总路由：统一挂载所有版本化的子路由。"""

from fastapi import APIRouter

from app.packages.library.api.v1.endpoints import library

api_router = APIRouter()
api_router.include_router(library.router)
