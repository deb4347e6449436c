"""Requirement calculation: pure computation and the menu/personnel loader."""
from datetime import date
from decimal import Decimal

import pytest

from food_station.core.errors import NotFoundError, ValidationError
from food_station.services.product_lines import get_product_line
from food_station.services.requirements import (
    DailyMenuView, DishView, IngredientLine, MealView, RequirementCalculator, UnitView,
    compute_requirements, summarize_ingredients,
)
from tests import factories

BEAN_SPROUTS = get_product_line("bean_sprouts")
SOY_CURD = get_product_line("soy_curd")
DAY = date(2024, 1, 10)


def _dish(dish_id, name, ingredients, servings=1):
    return DishView(
        id=dish_id,
        name=name,
        servings=servings,
        ingredients=[IngredientLine(ingredient_name=n, quantity=Decimal(q)) for n, q in ingredients],
    )


def _menu(day, meals, personnel_count=0):
    return DailyMenuView(
        date=day,
        personnel_count=personnel_count,
        meals=[MealView(meal_type=meal_type, dishes=dishes) for meal_type, dishes in meals.items()],
    )


# ========== pure computation ==========

def test_bean_sprouts_scenario():
    dish = _dish(1, "Stir-fried bean sprouts", [("bean sprouts", "1")], servings=2)
    unit = UnitView(id=1, name="Company A", default_personnel=0, personnel_by_date={DAY: 100})

    result = compute_requirements([_menu(DAY, {"noon": [dish]})], [unit], BEAN_SPROUTS)

    assert result["dishes"][0]["quantity_per_serving"] == Decimal("0.5")
    assert result["units"][0]["meals"]["noon"] == Decimal("50")
    assert result["summary"]["total_required"] == Decimal("50")
    assert result["summary"]["total_personnel"] == 100
    assert result["summary"]["average_per_person"] == Decimal("0.5")


def test_dish_counted_once_per_meal_even_with_several_matching_lines():
    dish = _dish(1, "Sprout salad", [("giá đỗ", "2"), ("bean sprouts", "3")])
    unit = UnitView(id=1, name="A", default_personnel=10)

    result = compute_requirements(
        [_menu(DAY, {"noon": [dish, dish], "evening": [dish]})], [unit], BEAN_SPROUTS
    )

    # first matching line, once in noon and once in evening
    assert result["units"][0]["meals"]["noon"] == Decimal("20")
    assert result["units"][0]["meals"]["evening"] == Decimal("20")
    assert result["summary"]["total_required"] == Decimal("40")
    assert result["summary"]["total_dishes_using"] == 1
    assert len(result["dishes"]) == 2


def test_zero_servings_treated_as_one():
    dish = _dish(1, "Tofu soup", [("tofu", "0.2")], servings=0)
    unit = UnitView(id=1, name="A", default_personnel=10)

    result = compute_requirements([_menu(DAY, {"morning": [dish]})], [unit], SOY_CURD)

    assert result["summary"]["total_required"] == Decimal("2.0")


def test_personnel_override_takes_precedence_over_default():
    unit = UnitView(id=1, name="A", default_personnel=80, personnel_by_date={DAY: 100})
    assert unit.personnel_on(DAY) == 100
    assert unit.personnel_on(date(2024, 1, 11)) == 80
    assert UnitView(id=2, name="B", default_personnel=None).personnel_on(DAY) == 0


def test_doubling_personnel_doubles_requirement():
    dish = _dish(1, "Tofu with tomato", [("đậu phụ", "1.5")], servings=10)
    menu = _menu(DAY, {"noon": [dish], "evening": [dish]})

    single = compute_requirements([menu], [UnitView(id=1, name="A", default_personnel=37)], SOY_CURD)
    double = compute_requirements([menu], [UnitView(id=1, name="A", default_personnel=74)], SOY_CURD)

    for meal_type in ("noon", "evening"):
        assert double["units"][0]["meals"][meal_type] == 2 * single["units"][0]["meals"][meal_type]
    assert double["summary"]["total_required"] == 2 * single["summary"]["total_required"]


def test_recommended_raw_input_round_trips_through_conversion_rate():
    dish = _dish(1, "Sprouts", [("bean sprouts", "1")], servings=3)
    units = [UnitView(id=1, name="A", default_personnel=50), UnitView(id=2, name="B", default_personnel=25)]

    summary = compute_requirements([_menu(DAY, {"noon": [dish]})], units, BEAN_SPROUTS)["summary"]

    assert summary["recommended_raw_input"] > 0
    assert abs(summary["recommended_raw_input"] * BEAN_SPROUTS.conversion_rate - summary["total_required"]) < Decimal("1e-9")


def test_no_daily_menus_gives_zeroed_result():
    result = compute_requirements([], [UnitView(id=1, name="A", default_personnel=100)], SOY_CURD)

    assert result["days"] == []
    assert result["summary"]["total_personnel"] == 0
    assert result["summary"]["total_required"] == 0
    assert result["summary"]["average_per_person"] == 0
    assert result["summary"]["recommended_raw_input"] == 0


def test_total_personnel_uses_first_day_in_scope():
    later = date(2024, 1, 11)
    dish = _dish(1, "Tofu", [("tofu", "1")])
    unit = UnitView(id=1, name="A", default_personnel=10, personnel_by_date={DAY: 30, later: 50})

    result = compute_requirements(
        [_menu(later, {"noon": [dish]}), _menu(DAY, {"noon": [dish]})], [unit], SOY_CURD
    )

    assert result["summary"]["total_personnel"] == 30
    assert [d["date"] for d in result["days"]] == [DAY, later]
    assert result["summary"]["total_required"] == Decimal("80")


def test_unmatched_dishes_contribute_nothing():
    dish = _dish(1, "Boiled pork", [("thịt lợn", "5")])
    result = compute_requirements(
        [_menu(DAY, {"noon": [dish]})], [UnitView(id=1, name="A", default_personnel=10)], SOY_CURD
    )
    assert result["summary"]["total_required"] == 0
    assert result["summary"]["total_dishes_using"] == 0
    assert len(result["days"]) == 1


def test_ingredient_summary_scales_by_daily_menu_personnel():
    soup = _dish(1, "Tofu soup", [("tofu", "1"), ("salt", "0.1")], servings=10)
    fried = _dish(2, "Fried tofu", [("Tofu", "2")], servings=10)
    daily = _menu(DAY, {"noon": [soup], "evening": [fried]}, personnel_count=50)

    items = {i["ingredient_name"].lower(): i for i in summarize_ingredients(daily)}

    assert items["tofu"]["total_quantity"] == Decimal("15")
    assert items["tofu"]["dishes"] == ["Tofu soup", "Fried tofu"]
    assert items["salt"]["total_quantity"] == Decimal("0.5")


# ========== loader against the database ==========

async def _seed_week(db, week=2, year=2024, with_daily_menu=True):
    product = await factories.create_product(db, "Giá đỗ")
    dish = await factories.create_dish(
        db, "Giá xào", [("Giá đỗ", "1")], servings=2, product_ids={"Giá đỗ": product.id}
    )
    unit = await factories.create_unit(db, "Company A", default_personnel=80)
    await factories.create_unit(db, "Company B", default_personnel=20, status="inactive")
    await factories.set_personnel(db, unit.id, DAY, 100)
    days = {DAY: {"noon": [dish.id]}} if with_daily_menu else {}
    await factories.create_menu(db, week, year, days, personnel_count=100)
    return unit


def test_date_without_menu_is_not_found(run_db):
    async def scenario(db):
        await RequirementCalculator(db).compute("bean_sprouts", target_date="2024-01-10")

    with pytest.raises(NotFoundError):
        run_db(scenario)


def test_week_without_menu_is_not_found(run_db):
    async def scenario(db):
        await RequirementCalculator(db).compute("bean_sprouts", week=2, year=2024)

    with pytest.raises(NotFoundError):
        run_db(scenario)


def test_date_query_resolves_menu_and_active_units(run_db):
    async def scenario(db):
        await _seed_week(db)
        return await RequirementCalculator(db).compute("bean_sprouts", target_date="2024-01-10")

    result = run_db(scenario)

    assert result["scope"]["type"] == "date"
    assert [u["unit_name"] for u in result["units"]] == ["Company A"]
    assert result["summary"]["total_required"] == Decimal("50")
    assert result["summary"]["recommended_raw_input"] == Decimal("50") / Decimal("3.0")


def test_menu_day_without_daily_menu_is_empty_not_error(run_db):
    async def scenario(db):
        await _seed_week(db)
        return await RequirementCalculator(db).compute("bean_sprouts", target_date="2024-01-12")

    result = run_db(scenario)

    assert result["days"] == []
    assert result["summary"]["total_required"] == 0
    assert result["summary"]["total_personnel"] == 0


def test_week_with_no_daily_menus_is_zeroed(run_db):
    async def scenario(db):
        await _seed_week(db, with_daily_menu=False)
        return await RequirementCalculator(db).compute("bean_sprouts", week=2, year=2024)

    result = run_db(scenario)

    assert result["summary"]["total_personnel"] == 0
    assert result["summary"]["total_required"] == 0


def test_unit_filter_restricts_units(run_db):
    async def scenario(db):
        await _seed_week(db)
        calc = RequirementCalculator(db)
        units = await calc.load_units(None, [DAY])
        inactive = await factories.create_unit(db, "Company C", default_personnel=10, status="inactive")
        filtered = await calc.compute("bean_sprouts", week=2, year=2024, unit_ids=[inactive.id])
        return units, filtered

    units, filtered = run_db(scenario)

    assert [u.name for u in units] == ["Company A"]
    assert [u["unit_name"] for u in filtered["units"]] == ["Company C"]
    assert filtered["summary"]["total_required"] == Decimal("5")


def test_all_units_used_when_none_active(run_db):
    async def scenario(db):
        await factories.create_unit(db, "Reserve", default_personnel=5, status="inactive")
        return await RequirementCalculator(db).load_units(None, [DAY])

    assert [u.name for u in run_db(scenario)] == ["Reserve"]


def test_linked_product_id_overrides_name(run_db):
    async def scenario(db):
        tofu = await factories.create_product(db, "Đậu phụ")
        sauce = await factories.create_product(db, "Soy sauce")
        silken = await factories.create_dish(
            db, "Silken curd", [("Đậu hũ non", "1")], product_ids={"Đậu hũ non": tofu.id}
        )
        misleading = await factories.create_dish(
            db, "Dipping sauce", [("tofu dipping sauce", "1")], product_ids={"tofu dipping sauce": sauce.id}
        )
        await factories.create_unit(db, "A", default_personnel=10)
        await factories.create_menu(db, 2, 2024, {DAY: {"noon": [silken.id, misleading.id]}})
        return await RequirementCalculator(db).compute("soy_curd", target_date=DAY)

    result = run_db(scenario)

    assert [d["dish_name"] for d in result["dishes"]] == ["Silken curd"]
    assert result["summary"]["total_required"] == Decimal("10")


def test_missing_scope_is_validation_error(run_db):
    async def scenario(db):
        await RequirementCalculator(db).compute("soy_curd")

    with pytest.raises(ValidationError):
        run_db(scenario)


def test_daily_totals_only_for_days_with_menus(run_db):
    async def scenario(db):
        await _seed_week(db)
        return await RequirementCalculator(db).daily_totals("bean_sprouts", [DAY, date(2024, 1, 11)])

    assert run_db(scenario) == {DAY: Decimal("50")}


def test_ingredient_summaries_for_week_and_missing_menu(run_db):
    async def scenario(db):
        await _seed_week(db)
        calc = RequirementCalculator(db)
        return (
            await calc.ingredient_summaries(week=2, year=2024),
            await calc.ingredient_summaries(target_date="2024-03-01"),
        )

    week, missing = run_db(scenario)

    assert missing == []
    assert len(week) == 1
    assert week[0]["ingredients"][0]["total_quantity"] == Decimal("50")
    assert week[0]["ingredients"][0]["category"] == "vegetables"
