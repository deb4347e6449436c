"""需求计算API"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from food_station.core.deps import get_db
from food_station.schemas.requirement import DailyIngredientSummary, RequirementResponse
from food_station.services.requirements import RequirementCalculator

router = APIRouter()


@router.get("/ingredient-summaries", response_model=List[DailyIngredientSummary])
async def get_ingredient_summaries(
    *,
    db: AsyncSession = Depends(get_db),
    date: Optional[str] = Query(None, description="日期 YYYY-MM-DD"),
    week: Optional[int] = Query(None, description="ISO 周数"),
    year: Optional[int] = Query(None),
    all_days: bool = Query(False, description="按日期查询时返回整周菜单"),
) -> Any:
    """每日菜单配料汇总（按就餐人数折算）"""
    return await RequirementCalculator(db).ingredient_summaries(
        target_date=date, week=week, year=year, all_days=all_days
    )


@router.get("/{product_line}", response_model=RequirementResponse)
async def get_requirements(
    *,
    db: AsyncSession = Depends(get_db),
    product_line: str,
    date: Optional[str] = Query(None, description="日期 YYYY-MM-DD"),
    week: Optional[int] = Query(None, description="ISO 周数"),
    year: Optional[int] = Query(None),
    unit_ids: Optional[List[int]] = Query(None, description="只计算这些单位"),
) -> Any:
    """
    某天或某周的成品需求量

    没有菜单覆盖该时间段返回 404；有菜单但没有相关菜品返回零值结果
    """
    return await RequirementCalculator(db).compute(
        product_line, target_date=date, week=week, year=year, unit_ids=unit_ids
    )


@router.get("/{product_line}/weekly", response_model=RequirementResponse)
async def get_weekly_requirements(
    *,
    db: AsyncSession = Depends(get_db),
    product_line: str,
    week: int = Query(..., description="ISO 周数"),
    year: int = Query(...),
    unit_ids: Optional[List[int]] = Query(None),
) -> Any:
    """整周需求，days 为逐日明细"""
    return await RequirementCalculator(db).compute(
        product_line, week=week, year=year, unit_ids=unit_ids
    )
