"""
加工台账服务

每条产品线每天一条台账：原料投入、成品产出、成品出库，以及从前一天结转的结余。
- 写入：按 (产品线, 日期) 原子 upsert，读前一天结余和写当天在同一个 BEGIN IMMEDIATE 事务内，
  多个进程/事件循环并发写入时按数据库写锁排队
- 补录/修改历史日期后，向后重算连续有记录的日期，保证结转链一致
- 查询：单日、周（7 行，缺失日期补零行）、月度序列、区间使用统计
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from food_station.core.config import settings
from food_station.core.dates import day_name, month_range, parse_date, shift_month, validate_year, week_dates
from food_station.core.errors import ValidationError
from food_station.core.numbers import ZERO, money, optional_decimal, quantity, ratio, safe_div, to_decimal
from food_station.models.dish import Dish, DishIngredient
from food_station.models.processing_ledger import (
    CARRY_CARRIED,
    CARRY_NO_RECORD,
    CARRY_ZERO,
    ProcessingLedgerEntry,
)
from food_station.services.product_lines import ProductLine, get_product_line

logger = logging.getLogger(__name__)

LineArg = Union[str, ProductLine]


def carry_over_from(previous: Optional[ProcessingLedgerEntry]) -> Tuple[Decimal, str]:
    """前一天台账 → (结转数量, 结转状态)"""
    if previous is None:
        return ZERO, CARRY_NO_RECORD
    remaining = Decimal(previous.derived_remaining or 0)
    if remaining > 0:
        return remaining, CARRY_CARRIED
    return ZERO, CARRY_ZERO


def compute_entry_figures(
    carried_over: Decimal,
    raw_input: Decimal,
    derived_collected: Decimal,
    derived_dispatched: Decimal,
    byproduct_quantity: Decimal,
    raw_price: Decimal,
    derived_price: Decimal,
    byproduct_price: Decimal,
    other_costs: Decimal,
) -> Dict[str, Decimal]:
    """
    计算当天结余、加工效率和损益

    结余 = max(0, 结转 + 产出 - 出库)
    效率 = 产出 / 投入（投入为 0 时为 0）
    收入 = 产出 × 成品单价 + 副产品 × 副产品单价
    成本 = 投入 × 原料单价 + 其他费用
    """
    remaining = max(ZERO, carried_over + derived_collected - derived_dispatched)
    revenue = derived_collected * derived_price + byproduct_quantity * byproduct_price
    cost = raw_input * raw_price + other_costs
    return {
        "carried_over": quantity(carried_over),
        "derived_remaining": quantity(remaining),
        "processing_efficiency": ratio(safe_div(derived_collected, raw_input)),
        "revenue": money(revenue),
        "cost": money(cost),
        "net_profit": money(revenue) - money(cost),
    }


def entry_to_dict(entry: ProcessingLedgerEntry) -> Dict[str, Any]:
    return {
        "product_line": entry.product_line,
        "date": entry.date,
        "day_of_week": day_name(entry.date),
        "is_recorded": True,
        "raw_input": entry.raw_input,
        "derived_collected": entry.derived_collected,
        "derived_dispatched": entry.derived_dispatched,
        "carried_over": entry.carried_over,
        "carry_over_state": entry.carry_over_state,
        "derived_remaining": entry.derived_remaining,
        "byproduct_quantity": entry.byproduct_quantity,
        "raw_price": entry.raw_price,
        "derived_price": entry.derived_price,
        "byproduct_price": entry.byproduct_price,
        "other_costs": entry.other_costs,
        "processing_efficiency": entry.processing_efficiency,
        "revenue": entry.revenue,
        "cost": entry.cost,
        "net_profit": entry.net_profit,
        "note": entry.note or "",
        "updated_at": entry.updated_at,
    }


def empty_day(line: ProductLine, day: date, previous: Optional[ProcessingLedgerEntry]) -> Dict[str, Any]:
    """
    没有台账的日期补一行零值

    结转和结余都是 0；前一天的结转状态和结余只作参考（previous_remaining），不参与任何合计
    """
    _, state = carry_over_from(previous)
    return {
        "product_line": line.code,
        "date": day,
        "day_of_week": day_name(day),
        "is_recorded": False,
        "raw_input": ZERO,
        "derived_collected": ZERO,
        "derived_dispatched": ZERO,
        "carried_over": ZERO,
        "carry_over_state": state,
        "derived_remaining": ZERO,
        "previous_remaining": None if previous is None else previous.derived_remaining,
        "byproduct_quantity": ZERO,
        "raw_price": line.raw_price,
        "derived_price": line.derived_price,
        "byproduct_price": line.byproduct_price,
        "other_costs": ZERO,
        "processing_efficiency": ZERO,
        "revenue": ZERO,
        "cost": ZERO,
        "net_profit": ZERO,
        "note": "",
        "updated_at": None,
    }


def summarize_entries(entries: List[ProcessingLedgerEntry]) -> Dict[str, Any]:
    """已记录台账的合计"""
    totals = {
        "total_raw_input": ZERO,
        "total_derived_collected": ZERO,
        "total_derived_dispatched": ZERO,
        "total_byproduct_quantity": ZERO,
        "total_revenue": ZERO,
        "total_cost": ZERO,
        "total_net_profit": ZERO,
    }
    daily_rates = []
    for entry in entries:
        raw = Decimal(entry.raw_input or 0)
        collected = Decimal(entry.derived_collected or 0)
        totals["total_raw_input"] += raw
        totals["total_derived_collected"] += collected
        totals["total_derived_dispatched"] += Decimal(entry.derived_dispatched or 0)
        totals["total_byproduct_quantity"] += Decimal(entry.byproduct_quantity or 0)
        totals["total_revenue"] += Decimal(entry.revenue or 0)
        totals["total_cost"] += Decimal(entry.cost or 0)
        totals["total_net_profit"] += Decimal(entry.net_profit or 0)
        if raw > 0:
            daily_rates.append(collected / raw)

    totals["recorded_days"] = len(entries)
    # 只统计有原料投入的日期
    totals["average_conversion_rate"] = ratio(
        sum(daily_rates, ZERO) / len(daily_rates) if daily_rates else ZERO
    )
    return totals


class ProductionLedger:
    """加工台账（存储会话由调用方注入）"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_entry(self, code: str, day: date) -> Optional[ProcessingLedgerEntry]:
        result = await self.db.execute(
            select(ProcessingLedgerEntry)
            .where(ProcessingLedgerEntry.product_line == code, ProcessingLedgerEntry.date == day)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_range(self, code: str, start: date, end: date) -> Dict[date, ProcessingLedgerEntry]:
        result = await self.db.execute(
            select(ProcessingLedgerEntry)
            .where(
                ProcessingLedgerEntry.product_line == code,
                ProcessingLedgerEntry.date >= start,
                ProcessingLedgerEntry.date <= end,
            )
            .order_by(ProcessingLedgerEntry.date)
            .execution_options(populate_existing=True)
        )
        return {entry.date: entry for entry in result.scalars().all()}

    async def upsert_daily(
        self,
        product_line: LineArg,
        entry_date: Union[str, date],
        raw_input: Any,
        derived_collected: Any,
        derived_dispatched: Any,
        byproduct_quantity: Any = 0,
        raw_price: Any = None,
        derived_price: Any = None,
        byproduct_price: Any = None,
        other_costs: Any = 0,
        note: Optional[str] = "",
    ) -> ProcessingLedgerEntry:
        """
        写入/更新某天台账

        相同参数重复调用结果不变（只刷新 updated_at）
        """
        line = product_line if isinstance(product_line, ProductLine) else get_product_line(product_line)
        day = parse_date(entry_date)

        values = {
            "raw_input": to_decimal(raw_input, "raw_input"),
            "derived_collected": to_decimal(derived_collected, "derived_collected"),
            "derived_dispatched": to_decimal(derived_dispatched, "derived_dispatched"),
            "byproduct_quantity": optional_decimal(byproduct_quantity, ZERO, "byproduct_quantity"),
            "raw_price": optional_decimal(raw_price, line.raw_price, "raw_price"),
            "derived_price": optional_decimal(derived_price, line.derived_price, "derived_price"),
            "byproduct_price": optional_decimal(byproduct_price, line.byproduct_price, "byproduct_price"),
            "other_costs": optional_decimal(other_costs, ZERO, "other_costs"),
        }

        # 写锁只能在事务开始时申请，先结束会话里已打开的读事务
        if self.db.in_transaction():
            await self.db.commit()

        try:
            await self.db.connection(execution_options={"sqlite_begin": "IMMEDIATE"})
            previous = await self._get_entry(line.code, day - timedelta(days=1))
            carried, state = carry_over_from(previous)
            figures = compute_entry_figures(carried, **values)

            row = {
                "product_line": line.code,
                "date": day,
                **{k: quantity(v) for k, v in values.items()},
                **figures,
                "carry_over_state": state,
                "note": note or "",
                "updated_at": datetime.utcnow(),
            }
            stmt = sqlite_insert(ProcessingLedgerEntry).values(created_at=datetime.utcnow(), **row)
            stmt = stmt.on_conflict_do_update(
                index_elements=["product_line", "date"],
                set_={key: stmt.excluded[key] for key in row if key not in ("product_line", "date")},
            )
            await self.db.execute(stmt)

            cascaded = await self._cascade_forward(line.code, day, figures["derived_remaining"])
            entry = await self._get_entry(line.code, day)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ 台账写入失败 {line.code} {day}: {e}")
            raise

        logger.info(
            f"📒 台账已保存: {line.code} {day} 结转={figures['carried_over']}({state}) "
            f"结余={entry.derived_remaining}"
            + (f"，向后重算 {cascaded} 天" if cascaded else "")
        )
        return entry

    async def _cascade_forward(self, code: str, day: date, remaining: Decimal) -> int:
        """向后重算连续有记录日期的结转和结余，遇到空缺日期停止"""
        count = 0
        current = day + timedelta(days=1)
        while True:
            entry = await self._get_entry(code, current)
            if entry is None:
                break
            carried = remaining if remaining > 0 else ZERO
            state = CARRY_CARRIED if remaining > 0 else CARRY_ZERO
            new_remaining = quantity(max(
                ZERO,
                carried + Decimal(entry.derived_collected or 0) - Decimal(entry.derived_dispatched or 0),
            ))
            if (
                Decimal(entry.carried_over or 0) != carried
                or entry.carry_over_state != state
                or Decimal(entry.derived_remaining or 0) != new_remaining
            ):
                entry.carried_over = quantity(carried)
                entry.carry_over_state = state
                entry.derived_remaining = new_remaining
                count += 1
            remaining = new_remaining
            current += timedelta(days=1)
        await self.db.flush()
        return count

    async def get_daily(self, product_line: LineArg, entry_date: Union[str, date]) -> Dict[str, Any]:
        line = product_line if isinstance(product_line, ProductLine) else get_product_line(product_line)
        day = parse_date(entry_date)
        entries = await self._get_range(line.code, day - timedelta(days=1), day)
        if day in entries:
            return entry_to_dict(entries[day])
        return empty_day(line, day, entries.get(day - timedelta(days=1)))

    async def get_weekly(self, product_line: LineArg, week: int, year: int) -> Dict[str, Any]:
        """ISO 周 7 天台账 + 合计，缺失日期补零行"""
        line = product_line if isinstance(product_line, ProductLine) else get_product_line(product_line)
        days = week_dates(week, year)
        before = days[0] - timedelta(days=1)
        entries = await self._get_range(line.code, before, days[-1])

        rows = []
        for day in days:
            if day in entries:
                rows.append(entry_to_dict(entries[day]))
            else:
                rows.append(empty_day(line, day, entries.get(day - timedelta(days=1))))

        opening, opening_state = carry_over_from(entries.get(before))
        recorded = [entries[d] for d in days if d in entries]
        return {
            "product_line": line.code,
            "week": week,
            "year": year,
            "start_date": days[0],
            "end_date": days[-1],
            "opening_balance": quantity(opening),
            "opening_state": opening_state,
            "closing_balance": rows[-1]["derived_remaining"],
            "days": rows,
            "totals": summarize_entries(recorded),
        }

    async def get_monthly(
        self, product_line: LineArg, year: int, month: int, month_count: int = 1
    ) -> Dict[str, Any]:
        """
        以 (year, month) 结尾的连续 month_count 个月汇总

        没有台账的月份返回 has_data=false，数值为空
        """
        line = product_line if isinstance(product_line, ProductLine) else get_product_line(product_line)
        validate_year(year)
        month_range(year, month)
        if month_count < 1 or month_count > settings.MONTH_COUNT_MAX:
            raise ValidationError(f"month_count 必须在 1-{settings.MONTH_COUNT_MAX} 之间")

        first_year, first_month = shift_month(year, month, -(month_count - 1))
        series_start, _ = month_range(first_year, first_month)
        _, series_end = month_range(year, month)
        entries = await self._get_range(line.code, series_start - timedelta(days=1), series_end)

        months = []
        for offset in range(month_count):
            y, m = shift_month(first_year, first_month, offset)
            start, end = month_range(y, m)
            recorded = [entry for d, entry in entries.items() if start <= d <= end]
            months.append(self._month_summary(line, y, m, start, recorded, entries.get(start - timedelta(days=1))))

        return {
            "product_line": line.code,
            "year": year,
            "month": month,
            "month_count": month_count,
            "months": months,
        }

    @staticmethod
    def _month_summary(
        line: ProductLine,
        year: int,
        month: int,
        start: date,
        recorded: List[ProcessingLedgerEntry],
        previous: Optional[ProcessingLedgerEntry],
    ) -> Dict[str, Any]:
        summary = {"year": year, "month": month, "label": f"{year}-{month:02d}", "has_data": bool(recorded)}
        if not recorded:
            for key in (
                "total_raw_input", "total_derived_collected", "total_derived_dispatched",
                "total_byproduct_quantity", "processing_efficiency", "total_revenue",
                "total_cost", "total_net_profit", "opening_balance", "closing_balance",
            ):
                summary[key] = None
            summary["recorded_days"] = 0
            return summary

        recorded = sorted(recorded, key=lambda e: e.date)
        totals = summarize_entries(recorded)
        opening, _ = carry_over_from(previous)
        summary.update({
            "total_raw_input": totals["total_raw_input"],
            "total_derived_collected": totals["total_derived_collected"],
            "total_derived_dispatched": totals["total_derived_dispatched"],
            "total_byproduct_quantity": totals["total_byproduct_quantity"],
            "processing_efficiency": ratio(
                safe_div(totals["total_derived_collected"], totals["total_raw_input"])
            ),
            "total_revenue": totals["total_revenue"],
            "total_cost": totals["total_cost"],
            "total_net_profit": totals["total_net_profit"],
            "opening_balance": quantity(opening),
            "closing_balance": recorded[-1].derived_remaining,
            "recorded_days": totals["recorded_days"],
        })
        return summary

    async def get_usage_statistics(
        self, product_line: LineArg, start_date: Union[str, date], end_date: Union[str, date]
    ) -> Dict[str, Any]:
        """区间加工统计 + 使用该成品的菜品"""
        line = product_line if isinstance(product_line, ProductLine) else get_product_line(product_line)
        start = parse_date(start_date)
        end = parse_date(end_date)
        if start > end:
            raise ValidationError("开始日期不能晚于结束日期")

        entries = list((await self._get_range(line.code, start, end)).values())
        total_raw = sum((Decimal(e.raw_input or 0) for e in entries), ZERO)
        total_derived = sum((Decimal(e.derived_collected or 0) for e in entries), ZERO)
        rate = safe_div(total_derived, total_raw) if total_raw > 0 else line.conversion_rate

        dishes = await self._dishes_using(line)
        return {
            "product_line": line.code,
            "start_date": start,
            "end_date": end,
            "processing_days": len(entries),
            "total_raw_input": total_raw,
            "total_derived_output": total_derived,
            "average_conversion_rate": ratio(rate),
            "average_daily_output": quantity(safe_div(total_derived, len(entries))),
            "dishes": dishes,
        }

    async def _dishes_using(self, line: ProductLine) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(Dish, DishIngredient)
            .join(DishIngredient, DishIngredient.dish_id == Dish.id)
            .order_by(Dish.name, DishIngredient.id)
        )
        dishes: Dict[int, Dict[str, Any]] = {}
        for dish, ingredient in result.all():
            if not line.ingredient_matcher.matches_name(ingredient.ingredient_name):
                continue
            item = dishes.setdefault(dish.id, {
                "dish_id": dish.id,
                "name": dish.name,
                "category": dish.category,
                "ingredients": [],
            })
            item["ingredients"].append(ingredient.ingredient_name)
        return list(dishes.values())
