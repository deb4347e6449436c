"""产品线API"""

from typing import Any, List
from fastapi import APIRouter

from food_station.schemas.product_line import ProductLineResponse
from food_station.services.product_lines import get_product_line, list_product_lines

router = APIRouter()


@router.get("/", response_model=List[ProductLineResponse])
async def list_lines() -> Any:
    """所有产品线配置"""
    return [ProductLineResponse(**line.to_dict()) for line in list_product_lines()]


@router.get("/{code}", response_model=ProductLineResponse)
async def get_line(code: str) -> Any:
    return ProductLineResponse(**get_product_line(code).to_dict())
