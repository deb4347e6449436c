"""菜单建议API"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from food_station.core.deps import get_db
from food_station.schemas.inventory import AlertEntry
from food_station.schemas.menu_planning import (
    DailyPlanRequest, DailyPlanResponse, DishSuggestion, MenuPlanningOverview
)
from food_station.services.menu_suggestions import MenuPlanner

router = APIRouter()


@router.get("/alerts", response_model=List[AlertEntry])
async def get_alerts(
    *,
    db: AsyncSession = Depends(get_db),
    threshold: Optional[float] = Query(None, ge=0, description="低库存阈值，空则用默认值"),
) -> Any:
    """库存预警，critical 在前"""
    return await MenuPlanner(db).alerts(threshold=threshold)


@router.get("/suggestions", response_model=List[DishSuggestion])
async def get_suggestions(
    *,
    db: AsyncSession = Depends(get_db),
    unit_ids: Optional[List[int]] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=100),
) -> Any:
    """按库存可做的菜品建议"""
    return await MenuPlanner(db).suggestions(unit_ids=unit_ids, limit=limit)


@router.post("/daily-plan", response_model=DailyPlanResponse)
async def create_daily_plan(
    *,
    db: AsyncSession = Depends(get_db),
    plan_in: DailyPlanRequest,
) -> Any:
    """生成每日菜单计划并和预算比较"""
    return await MenuPlanner(db).daily_plan(
        plan_in.date, budget_per_person=plan_in.budget_per_person, unit_ids=plan_in.unit_ids
    )


@router.get("/overview", response_model=MenuPlanningOverview)
async def get_overview(
    *,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """菜单规划总览"""
    return await MenuPlanner(db).overview()
