"""V1 API 路由聚合 - 单机版（无认证）"""
from fastapi import APIRouter

from food_station.api.api_v1.endpoints import (
    product_lines, requirements, ledger, inventory, menu_planning, system
)

api_router = APIRouter()

# 加工站核心API
api_router.include_router(product_lines.router, prefix="/product-lines", tags=["产品线"])
api_router.include_router(requirements.router, prefix="/requirements", tags=["需求计算"])
api_router.include_router(ledger.router, prefix="/ledger", tags=["加工台账"])

# 库存与菜单
api_router.include_router(inventory.router, prefix="/inventory", tags=["库存管理"])
api_router.include_router(menu_planning.router, prefix="/menu-planning", tags=["菜单建议"])

# 系统API
api_router.include_router(system.router, prefix="/system", tags=["系统管理"])
