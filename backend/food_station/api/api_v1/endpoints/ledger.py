"""加工台账API"""

from typing import Any
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from food_station.core.config import settings
from food_station.core.deps import get_db
from food_station.schemas.ledger import (
    LedgerEntryCreate, LedgerEntryResponse, LedgerWeeklyResponse,
    LedgerMonthlyResponse, LedgerStatisticsResponse
)
from food_station.services.ledger import ProductionLedger, entry_to_dict
from food_station.services.product_lines import get_product_line
from food_station.services.requirements import RequirementCalculator

router = APIRouter()


@router.post("/{product_line}/daily", response_model=LedgerEntryResponse)
async def upsert_daily_entry(
    *,
    db: AsyncSession = Depends(get_db),
    product_line: str,
    entry_in: LedgerEntryCreate,
) -> Any:
    """写入某天台账，同一天重复提交为更新，并向后重算结转"""
    entry = await ProductionLedger(db).upsert_daily(
        product_line,
        entry_in.date,
        raw_input=entry_in.raw_input,
        derived_collected=entry_in.derived_collected,
        derived_dispatched=entry_in.derived_dispatched,
        byproduct_quantity=entry_in.byproduct_quantity,
        raw_price=entry_in.raw_price,
        derived_price=entry_in.derived_price,
        byproduct_price=entry_in.byproduct_price,
        other_costs=entry_in.other_costs,
        note=entry_in.note,
    )
    return entry_to_dict(entry)


@router.get("/{product_line}/daily/{entry_date}", response_model=LedgerEntryResponse)
async def get_daily_entry(
    *,
    db: AsyncSession = Depends(get_db),
    product_line: str,
    entry_date: str,
) -> Any:
    """单日台账，没有记录时返回补零行"""
    return await ProductionLedger(db).get_daily(product_line, entry_date)


@router.get("/{product_line}/weekly", response_model=LedgerWeeklyResponse)
async def get_weekly_ledger(
    *,
    db: AsyncSession = Depends(get_db),
    product_line: str,
    week: int = Query(..., description="ISO 周数"),
    year: int = Query(...),
) -> Any:
    """
    一周 7 天台账 + 合计

    planned_demand 为当天菜单需求量，没有每日菜单的日期为空
    """
    line = get_product_line(product_line)
    weekly = await ProductionLedger(db).get_weekly(line, week, year)
    demand = await RequirementCalculator(db).daily_totals(line, [row["date"] for row in weekly["days"]])
    for row in weekly["days"]:
        row["planned_demand"] = demand.get(row["date"])
    return weekly


@router.get("/{product_line}/monthly", response_model=LedgerMonthlyResponse)
async def get_monthly_ledger(
    *,
    db: AsyncSession = Depends(get_db),
    product_line: str,
    year: int = Query(...),
    month: int = Query(..., description="1-12"),
    month_count: int = Query(1, description=f"返回的月份数，最多 {settings.MONTH_COUNT_MAX}"),
) -> Any:
    """以 year-month 结尾的月度汇总序列，没有台账的月份 has_data=false"""
    return await ProductionLedger(db).get_monthly(product_line, year, month, month_count)


@router.get("/{product_line}/statistics", response_model=LedgerStatisticsResponse)
async def get_usage_statistics(
    *,
    db: AsyncSession = Depends(get_db),
    product_line: str,
    start_date: str = Query(..., description="YYYY-MM-DD"),
    end_date: str = Query(..., description="YYYY-MM-DD"),
) -> Any:
    """区间加工统计与使用该成品的菜品"""
    return await ProductionLedger(db).get_usage_statistics(product_line, start_date, end_date)
