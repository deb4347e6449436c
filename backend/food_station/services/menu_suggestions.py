"""
菜单建议

- 按库存判断每道菜的配料状态：过期 → 即将过期（3 天内）→ 充足 → 不足
- 没有不足/过期配料的菜才可做；含即将过期配料的为 high，其余 medium
- 成本按伙食标准价格表模糊匹配单价，找不到用默认单价
- 生成每日菜单：按优先级依次填充早/中/晚餐的固定名额，和人均预算比较
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from food_station.core.config import settings
from food_station.core.numbers import ZERO, money, safe_div
from food_station.models.daily_ration import DailyRation
from food_station.models.dish import Dish, DishIngredient
from food_station.services.inventory_alerts import (
    InventoryItem,
    classify,
    days_until_expiry,
    load_inventory,
    LEVEL_CRITICAL,
)
from food_station.services.product_lines import normalize_name
from food_station.services.requirements import DishView, RequirementCalculator, dish_view

logger = logging.getLogger(__name__)

STATUS_EXPIRED = "expired"
STATUS_EXPIRING_SOON = "expiring_soon"
STATUS_SUFFICIENT = "sufficient"
STATUS_INSUFFICIENT = "insufficient"

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
_PRIORITY_ORDER = {PRIORITY_HIGH: 0, PRIORITY_MEDIUM: 1}

# 每餐名额：按顺序从建议列表中取，不重复使用
# 这是站点配置而非推导结果：建议只有 high/medium 两档，晚餐名额按午餐的配比设置，可按站点菜谱调整
MEAL_SLOTS: List[Tuple[str, Dict[str, int]]] = [
    ("morning", {PRIORITY_HIGH: 2}),
    ("noon", {PRIORITY_HIGH: 1, PRIORITY_MEDIUM: 2}),
    ("evening", {PRIORITY_HIGH: 1, PRIORITY_MEDIUM: 2}),
]


def lookup_price(
    ingredient_name: str, ration_prices: Sequence[Tuple[str, Decimal]], default: Optional[Decimal] = None
) -> Decimal:
    """
    单价模糊匹配：名称完全相同 → 价格表名称包含配料名 → 配料名包含价格表名称
    """
    default = Decimal(settings.DEFAULT_RATION_PRICE if default is None else default)
    name = normalize_name(ingredient_name)
    if not name:
        return default
    normalized = [(normalize_name(r_name), Decimal(price or 0)) for r_name, price in ration_prices]
    for r_name, price in normalized:
        if r_name == name:
            return price
    for r_name, price in normalized:
        if r_name and name in r_name:
            return price
    for r_name, price in normalized:
        if r_name and r_name in name:
            return price
    return default


def _find_inventory(
    product_id: Optional[int], ingredient_name: str,
    by_id: Dict[int, InventoryItem], by_name: Dict[str, InventoryItem],
) -> Optional[InventoryItem]:
    if product_id is not None and product_id in by_id:
        return by_id[product_id]
    return by_name.get(normalize_name(ingredient_name))


def ingredient_status(available: Decimal, expired: Decimal, days: int, required: Decimal) -> str:
    if expired > 0:
        return STATUS_EXPIRED
    if days <= 3:
        return STATUS_EXPIRING_SOON
    if available >= required:
        return STATUS_SUFFICIENT
    return STATUS_INSUFFICIENT


def rank(
    dishes: Iterable[DishView],
    inventory: Iterable[InventoryItem],
    ration_prices: Sequence[Tuple[str, Decimal]],
    now: Optional[datetime] = None,
    unit_ids: Optional[Sequence[int]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """可做的菜按优先级排序（high 在前，同级保持原顺序），最多 limit 条"""
    now = now or datetime.now()
    limit = settings.SUGGESTION_LIMIT if limit is None else limit
    inventory = list(inventory)
    by_id = {item.product_id: item for item in inventory}
    by_name = {normalize_name(item.product_name): item for item in inventory}

    suggestions = []
    for dish in dishes:
        if not dish.ingredients:
            continue

        analysis = []
        reasons = []
        estimated_cost = ZERO
        for ingredient in dish.ingredients:
            required = Decimal(ingredient.quantity or 0)
            item = _find_inventory(ingredient.product_id, ingredient.ingredient_name, by_id, by_name)
            available = item.non_expired_quantity if item else ZERO
            expired = item.expired_quantity if item else ZERO
            days = days_until_expiry(item.earliest_expiry if item else None, now)

            status = ingredient_status(available, expired, days, required)
            if status == STATUS_EXPIRED:
                reasons.append(f"{ingredient.ingredient_name} has expired stock")
            elif status == STATUS_EXPIRING_SOON:
                reasons.append(f"{ingredient.ingredient_name} expires in {days} days")

            estimated_cost += required * lookup_price(ingredient.ingredient_name, ration_prices)
            analysis.append({
                "product_id": ingredient.product_id,
                "ingredient_name": ingredient.ingredient_name,
                "required_quantity": required,
                "available_quantity": available,
                "unit": ingredient.unit,
                "days_until_expiry": days,
                "status": status,
            })

        statuses = {a["status"] for a in analysis}
        if STATUS_INSUFFICIENT in statuses or STATUS_EXPIRED in statuses:
            continue

        if STATUS_EXPIRING_SOON in statuses:
            priority = PRIORITY_HIGH
            reasons.append("uses ingredients close to expiry")
        else:
            priority = PRIORITY_MEDIUM

        suggestions.append({
            "dish_id": dish.id,
            "dish_name": dish.name,
            "category": dish.category,
            "priority": priority,
            "reason": ", ".join(reasons) or "all ingredients in stock",
            "ingredients": analysis,
            "estimated_cost": money(estimated_cost),
            "suitable_for_units": list(unit_ids or []),
        })

    suggestions.sort(key=lambda s: _PRIORITY_ORDER[s["priority"]])
    return suggestions[:limit]


def build_daily_plan(
    suggestions: Sequence[Dict[str, Any]],
    total_personnel: int,
    budget_per_person: Optional[Decimal] = None,
    plan_date: Optional[date] = None,
) -> Dict[str, Any]:
    """
    按名额填充三餐，计算总成本和预算状态

    低于预算 80% 为 under，超过预算为 over，其余 within
    """
    budget_per_person = Decimal(
        settings.DAILY_BUDGET_PER_PERSON if budget_per_person is None else budget_per_person
    )
    pools = {
        PRIORITY_HIGH: [s for s in suggestions if s["priority"] == PRIORITY_HIGH],
        PRIORITY_MEDIUM: [s for s in suggestions if s["priority"] == PRIORITY_MEDIUM],
    }
    cursors = {priority: 0 for priority in pools}

    meals: Dict[str, List[Dict[str, Any]]] = {}
    for meal_type, slots in MEAL_SLOTS:
        selected = []
        for priority, count in slots.items():
            start = cursors[priority]
            taken = pools[priority][start:start + count]
            cursors[priority] = start + len(taken)
            selected.extend(taken)
        meals[meal_type] = selected

    personnel = Decimal(total_personnel or 0)
    total_cost = sum(
        (Decimal(s["estimated_cost"]) * personnel for dishes in meals.values() for s in dishes), ZERO
    )
    daily_budget = budget_per_person * personnel

    if total_cost < daily_budget * Decimal("0.8"):
        budget_status = "under"
    elif total_cost > daily_budget:
        budget_status = "over"
    else:
        budget_status = "within"

    return {
        "date": plan_date,
        "total_personnel": total_personnel or 0,
        "meals": meals,
        "total_cost": money(total_cost),
        "budget_per_person": money(budget_per_person),
        "daily_budget": money(daily_budget),
        "budget_usage": safe_div(total_cost, daily_budget),
        "budget_status": budget_status,
    }


# ========== 数据加载 ==========

async def load_dishes(db: AsyncSession) -> List[DishView]:
    result = await db.execute(
        select(Dish)
        .options(selectinload(Dish.ingredients).selectinload(DishIngredient.product))
        .order_by(Dish.id)
    )
    return [dish_view(dish) for dish in result.scalars().all()]


async def load_ration_prices(db: AsyncSession) -> List[Tuple[str, Decimal]]:
    result = await db.execute(select(DailyRation.name, DailyRation.price_per_unit).order_by(DailyRation.id))
    return [(name, Decimal(price or 0)) for name, price in result.all()]


class MenuPlanner:
    """菜单建议与每日计划（存储会话由调用方注入）"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def alerts(self, now: Optional[datetime] = None, threshold: Optional[Decimal] = None) -> List[Dict[str, Any]]:
        return classify(await load_inventory(self.db), now or datetime.now(), threshold)

    async def suggestions(
        self, now: Optional[datetime] = None, unit_ids: Optional[Sequence[int]] = None, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        now = now or datetime.now()
        units = await RequirementCalculator(self.db).load_units(unit_ids, [now.date()])
        return rank(
            await load_dishes(self.db),
            await load_inventory(self.db),
            await load_ration_prices(self.db),
            now=now,
            unit_ids=[u.id for u in units],
            limit=limit,
        )

    async def total_personnel(self, day: date, unit_ids: Optional[Sequence[int]] = None) -> int:
        units = await RequirementCalculator(self.db).load_units(unit_ids, [day])
        return sum(unit.personnel_on(day) for unit in units)

    async def daily_plan(
        self,
        plan_date: date,
        budget_per_person: Optional[Decimal] = None,
        unit_ids: Optional[Sequence[int]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        suggestions = await self.suggestions(now=now, unit_ids=unit_ids)
        personnel = await self.total_personnel(plan_date, unit_ids)
        plan = build_daily_plan(suggestions, personnel, budget_per_person, plan_date)
        logger.info(
            f"🍽️ 每日菜单 {plan_date}: {personnel} 人，成本 {plan['total_cost']}，预算状态 {plan['budget_status']}"
        )
        return plan

    async def overview(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        inventory = await load_inventory(self.db)
        alerts = classify(inventory, now)
        suggestions = await self.suggestions(now=now)
        return {
            "date": now.date(),
            "total_personnel": await self.total_personnel(now.date()),
            "total_products": len(inventory),
            "total_non_expired_quantity": sum((i.non_expired_quantity for i in inventory), ZERO),
            "total_expired_quantity": sum((i.expired_quantity for i in inventory), ZERO),
            "critical_alerts": sum(1 for a in alerts if a["level"] == LEVEL_CRITICAL),
            "suggestions": suggestions,
            "alerts": alerts,
        }
