"""
需求计算服务 - 按菜单和各单位人数计算某产品线成品的需求量

计算步骤：
1. 确定范围：某天（覆盖该日期的周菜单下当天的每日菜单）或某周（周菜单下所有每日菜单）
2. 每个餐次每道菜找出匹配产品线的配料，同一天同一餐次同一道菜只算一次
3. 每份用量 = 配料数量 / 菜品份数（份数为 0 或空时按 1）
4. 单位人数 = 当天人数记录 ?? 编制人数 ?? 0
5. 需求量 = 每份用量 × 人数，按单位/餐次/天汇总
6. 建议原料投入 = 总需求 / 转化率
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from food_station.core.dates import day_name, parse_date, week_dates
from food_station.core.errors import NotFoundError, ValidationError
from food_station.core.numbers import ZERO, safe_div
from food_station.models.dish import Dish, DishIngredient
from food_station.models.menu import MEAL_TYPES, DailyMenu, Meal, Menu
from food_station.models.product import Product
from food_station.models.unit import Unit, UnitPersonnelDaily
from food_station.services.product_lines import IngredientMatcher, ProductLine, get_product_line, normalize_name

logger = logging.getLogger(__name__)


# ========== 计算用的只读视图 ==========

@dataclass
class IngredientLine:
    ingredient_name: str
    quantity: Decimal
    product_id: Optional[int] = None
    unit: str = "kg"
    category: Optional[str] = None


@dataclass
class DishView:
    id: int
    name: str
    servings: int = 1
    category: Optional[str] = None
    ingredients: List[IngredientLine] = field(default_factory=list)


@dataclass
class MealView:
    meal_type: str
    dishes: List[DishView] = field(default_factory=list)


@dataclass
class DailyMenuView:
    date: date
    personnel_count: int = 0
    meals: List[MealView] = field(default_factory=list)


@dataclass
class UnitView:
    id: int
    name: str
    default_personnel: Optional[int] = None
    personnel_by_date: Dict[date, int] = field(default_factory=dict)

    def personnel_on(self, day: date) -> int:
        if day in self.personnel_by_date and self.personnel_by_date[day] is not None:
            return self.personnel_by_date[day]
        return self.default_personnel or 0


def quantity_per_serving(ingredient: IngredientLine, dish: DishView) -> Decimal:
    return Decimal(ingredient.quantity or 0) / Decimal(dish.servings or 1)


def _empty_meals() -> Dict[str, Decimal]:
    return OrderedDict((meal_type, ZERO) for meal_type in MEAL_TYPES)


def compute_requirements(
    daily_menus: Sequence[DailyMenuView],
    units: Sequence[UnitView],
    product_line: ProductLine,
    matcher: Optional[IngredientMatcher] = None,
    scope: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """纯计算：每日菜单 × 单位人数 → 需求结果"""
    matcher = matcher or product_line.ingredient_matcher
    daily_menus = sorted(daily_menus, key=lambda dm: dm.date)

    unit_rows = OrderedDict(
        (unit.id, {
            "unit_id": unit.id,
            "unit_name": unit.name,
            "personnel": 0,
            "meals": _empty_meals(),
            "total_required": ZERO,
        })
        for unit in units
    )
    days = []
    dish_rows = []
    distinct_dishes = set()

    for daily_menu in daily_menus:
        day_meals = _empty_meals()
        day_personnel = sum(unit.personnel_on(daily_menu.date) for unit in units)
        seen = set()

        for meal in daily_menu.meals:
            for dish in meal.dishes:
                key = (daily_menu.date, meal.meal_type, dish.id)
                if key in seen:
                    continue
                ingredient = next(
                    (ing for ing in dish.ingredients if matcher.matches(ing.ingredient_name, ing.product_id)),
                    None,
                )
                if ingredient is None:
                    continue
                seen.add(key)
                distinct_dishes.add(dish.id)

                per_serving = quantity_per_serving(ingredient, dish)
                dish_required = ZERO
                for unit in units:
                    required = per_serving * unit.personnel_on(daily_menu.date)
                    row = unit_rows[unit.id]
                    row["meals"].setdefault(meal.meal_type, ZERO)
                    row["meals"][meal.meal_type] += required
                    row["total_required"] += required
                    dish_required += required

                day_meals.setdefault(meal.meal_type, ZERO)
                day_meals[meal.meal_type] += dish_required
                dish_rows.append({
                    "date": daily_menu.date,
                    "meal_type": meal.meal_type,
                    "dish_id": dish.id,
                    "dish_name": dish.name,
                    "ingredient_name": ingredient.ingredient_name,
                    "quantity": Decimal(ingredient.quantity or 0),
                    "servings": dish.servings or 1,
                    "quantity_per_serving": per_serving,
                    "required_quantity": dish_required,
                })

        days.append({
            "date": daily_menu.date,
            "day_of_week": day_name(daily_menu.date),
            "personnel": day_personnel,
            "meals": day_meals,
            "total_required": sum(day_meals.values(), ZERO),
        })

    # 人数取范围内第一天
    first_day = daily_menus[0].date if daily_menus else None
    for unit in units:
        unit_rows[unit.id]["personnel"] = unit.personnel_on(first_day) if first_day else 0

    total_required = sum((row["total_required"] for row in unit_rows.values()), ZERO)
    total_personnel = sum(row["personnel"] for row in unit_rows.values())

    return {
        "product_line": product_line.code,
        "scope": scope or {},
        "days": days,
        "units": list(unit_rows.values()),
        "dishes": dish_rows,
        "summary": {
            "total_dishes_using": len(distinct_dishes),
            "total_personnel": total_personnel,
            "total_required": total_required,
            "average_per_person": safe_div(total_required, total_personnel),
            "conversion_rate": product_line.conversion_rate,
            "recommended_raw_input": safe_div(total_required, product_line.conversion_rate),
        },
    }


def summarize_ingredients(daily_menu: DailyMenuView) -> List[Dict[str, Any]]:
    """
    当天菜单所有配料汇总，按每日菜单的就餐人数折算

    用量 = 配料数量 × 就餐人数 / 份数
    """
    personnel = daily_menu.personnel_count or 0
    summary: Dict[Any, Dict[str, Any]] = {}
    for meal in daily_menu.meals:
        for dish in meal.dishes:
            for ingredient in dish.ingredients:
                key = ingredient.product_id or normalize_name(ingredient.ingredient_name)
                item = summary.setdefault(key, {
                    "product_id": ingredient.product_id,
                    "ingredient_name": ingredient.ingredient_name,
                    "category": ingredient.category or "other",
                    "unit": ingredient.unit or "kg",
                    "total_quantity": ZERO,
                    "dishes": [],
                })
                item["total_quantity"] += quantity_per_serving(ingredient, dish) * personnel
                if dish.name not in item["dishes"]:
                    item["dishes"].append(dish.name)
    return sorted(summary.values(), key=lambda i: (i["category"], normalize_name(i["ingredient_name"])))


# ========== ORM → 视图 ==========

def dish_view(dish: Dish) -> DishView:
    return DishView(
        id=dish.id,
        name=dish.name,
        servings=dish.servings or 1,
        category=dish.category,
        ingredients=[
            IngredientLine(
                ingredient_name=ing.ingredient_name,
                quantity=Decimal(ing.quantity or 0),
                product_id=ing.product_id,
                unit=ing.unit or "kg",
                category=ing.product.category if ing.product is not None else None,
            )
            for ing in dish.ingredients
        ],
    )


def daily_menu_view(daily_menu: DailyMenu) -> DailyMenuView:
    return DailyMenuView(
        date=daily_menu.date,
        personnel_count=daily_menu.personnel_count or 0,
        meals=[
            MealView(meal_type=meal.meal_type, dishes=[dish_view(d) for d in meal.dishes])
            for meal in daily_menu.meals
        ],
    )


_DAILY_MENU_LOAD = (
    selectinload(DailyMenu.meals)
    .selectinload(Meal.dishes)
    .selectinload(Dish.ingredients)
    .selectinload(DishIngredient.product)
)


class RequirementCalculator:
    """需求计算（存储会话由调用方注入）"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_matcher(self, line: ProductLine) -> IngredientMatcher:
        """按商品名称解析出产品线对应的商品 ID"""
        result = await self.db.execute(select(Product.id, Product.name))
        ids = [pid for pid, name in result.all() if line.ingredient_matcher.matches_name(name)]
        if not ids:
            return line.ingredient_matcher
        return line.ingredient_matcher.with_product_ids(ids)

    async def load_units(self, unit_ids: Optional[Iterable[int]], dates: Sequence[date]) -> List[UnitView]:
        """
        指定单位时只取这些单位；否则取启用单位，没有启用单位时取全部
        """
        if unit_ids:
            result = await self.db.execute(select(Unit).where(Unit.id.in_(list(unit_ids))).order_by(Unit.id))
            units = result.scalars().all()
        else:
            result = await self.db.execute(select(Unit).where(Unit.status == "active").order_by(Unit.id))
            units = result.scalars().all()
            if not units:
                result = await self.db.execute(select(Unit).order_by(Unit.id))
                units = result.scalars().all()

        overrides: Dict[int, Dict[date, int]] = {}
        if units and dates:
            result = await self.db.execute(
                select(UnitPersonnelDaily).where(
                    UnitPersonnelDaily.unit_id.in_([u.id for u in units]),
                    UnitPersonnelDaily.date.in_(list(dates)),
                )
            )
            for row in result.scalars().all():
                overrides.setdefault(row.unit_id, {})[row.date] = row.personnel

        return [
            UnitView(
                id=u.id,
                name=u.name,
                default_personnel=u.default_personnel,
                personnel_by_date=overrides.get(u.id, {}),
            )
            for u in units
        ]

    async def _menu_for_date(self, day: date) -> Menu:
        result = await self.db.execute(
            select(Menu).where(Menu.start_date <= day, Menu.end_date >= day).order_by(Menu.id)
        )
        menu = result.scalars().first()
        if menu is None:
            raise NotFoundError(f"{day} 没有对应的菜单")
        return menu

    async def _menu_for_week(self, week: int, year: int) -> Menu:
        week_dates(week, year)
        result = await self.db.execute(select(Menu).where(Menu.week == week, Menu.year == year))
        menu = result.scalars().first()
        if menu is None:
            raise NotFoundError(f"{year} 年第 {week} 周没有菜单")
        return menu

    async def _daily_menus(self, *conditions) -> List[DailyMenuView]:
        result = await self.db.execute(
            select(DailyMenu).where(*conditions).options(_DAILY_MENU_LOAD).order_by(DailyMenu.date)
        )
        return [daily_menu_view(dm) for dm in result.scalars().all()]

    async def compute(
        self,
        product_line: Any,
        target_date: Any = None,
        week: Optional[int] = None,
        year: Optional[int] = None,
        unit_ids: Optional[Iterable[int]] = None,
    ) -> Dict[str, Any]:
        line = product_line if isinstance(product_line, ProductLine) else get_product_line(product_line)

        if target_date is not None:
            day = parse_date(target_date)
            menu = await self._menu_for_date(day)
            daily_menus = await self._daily_menus(DailyMenu.menu_id == menu.id, DailyMenu.date == day)
            scope = {"type": "date", "date": day, "menu_id": menu.id}
        elif week is not None and year is not None:
            menu = await self._menu_for_week(week, year)
            daily_menus = await self._daily_menus(DailyMenu.menu_id == menu.id)
            scope = {"type": "week", "week": week, "year": year, "menu_id": menu.id}
        else:
            raise ValidationError("需要提供 date，或同时提供 week 和 year")

        dates = [dm.date for dm in daily_menus]
        units = await self.load_units(unit_ids, dates)
        matcher = await self.resolve_matcher(line)
        result = compute_requirements(daily_menus, units, line, matcher, scope)

        summary = result["summary"]
        logger.info(
            f"🧮 需求计算 {line.code} {scope.get('date') or f'{year}-W{week}'}: "
            f"{len(daily_menus)} 天 {summary['total_dishes_using']} 道菜，总需求 {summary['total_required']}"
        )
        return result

    async def daily_totals(self, product_line: Any, dates: Sequence[date]) -> Dict[date, Decimal]:
        """指定日期各自的总需求，只返回有每日菜单的日期"""
        line = product_line if isinstance(product_line, ProductLine) else get_product_line(product_line)
        if not dates:
            return {}
        daily_menus = await self._daily_menus(DailyMenu.date.in_(list(dates)))
        if not daily_menus:
            return {}
        units = await self.load_units(None, [dm.date for dm in daily_menus])
        matcher = await self.resolve_matcher(line)

        totals: Dict[date, Decimal] = {}
        for daily_menu in daily_menus:
            result = compute_requirements([daily_menu], units, line, matcher)
            totals[daily_menu.date] = totals.get(daily_menu.date, ZERO) + result["summary"]["total_required"]
        return totals

    async def ingredient_summaries(
        self,
        target_date: Any = None,
        week: Optional[int] = None,
        year: Optional[int] = None,
        all_days: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        每日配料汇总

        - 指定 date：只返回当天（all_days=True 时返回该日期所在周菜单的全部天）
        - 指定 week + year：返回该周菜单全部天
        没有菜单覆盖时返回空列表
        """
        if target_date is not None:
            day = parse_date(target_date)
            result = await self.db.execute(
                select(Menu).where(Menu.start_date <= day, Menu.end_date >= day).order_by(Menu.id)
            )
            menu = result.scalars().first()
            if menu is None:
                return []
            conditions = [DailyMenu.menu_id == menu.id]
            if not all_days:
                conditions.append(DailyMenu.date == day)
        elif week is not None and year is not None:
            week_dates(week, year)
            result = await self.db.execute(select(Menu).where(Menu.week == week, Menu.year == year))
            menu = result.scalars().first()
            if menu is None:
                return []
            conditions = [DailyMenu.menu_id == menu.id]
        else:
            raise ValidationError("需要提供 date，或同时提供 week 和 year")

        return [
            {
                "date": dm.date,
                "day_of_week": day_name(dm.date),
                "personnel_count": dm.personnel_count,
                "ingredients": summarize_ingredients(dm),
            }
            for dm in await self._daily_menus(*conditions)
        ]
