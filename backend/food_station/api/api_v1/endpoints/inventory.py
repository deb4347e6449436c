"""食品库存API"""

from dataclasses import asdict
from typing import Any, List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from food_station.core.deps import get_db
from food_station.schemas.inventory import ExpiryRefreshResponse, InventoryProductResponse
from food_station.services.inventory_alerts import load_inventory, refresh_expiry_status

router = APIRouter()


@router.get("/", response_model=List[InventoryProductResponse])
async def list_inventory(
    *,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """按商品汇总的食品库存及其批次"""
    return [asdict(item) for item in await load_inventory(db)]


@router.post("/update-expiry", response_model=ExpiryRefreshResponse)
async def update_expiry(
    *,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """按当前时间重新计算所有批次的过期/未过期数量"""
    return await refresh_expiry_status(db)
