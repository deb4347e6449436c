"""需求计算 Schema"""

from datetime import date as DateType
from typing import Dict, List, Optional
from pydantic import BaseModel


class RequirementScope(BaseModel):
    type: str  # date / week
    date: Optional[DateType] = None
    week: Optional[int] = None
    year: Optional[int] = None
    menu_id: Optional[int] = None


class UnitRequirement(BaseModel):
    """单位需求（personnel 为范围内第一天人数）"""
    unit_id: int
    unit_name: str
    personnel: int = 0
    meals: Dict[str, float] = {}
    total_required: float = 0


class DayRequirement(BaseModel):
    date: DateType
    day_of_week: str
    personnel: int = 0
    meals: Dict[str, float] = {}
    total_required: float = 0


class DishRequirement(BaseModel):
    date: DateType
    meal_type: str
    dish_id: int
    dish_name: str
    ingredient_name: str
    quantity: float
    servings: int
    quantity_per_serving: float
    required_quantity: float


class RequirementSummary(BaseModel):
    total_dishes_using: int = 0
    total_personnel: int = 0
    total_required: float = 0
    average_per_person: float = 0
    conversion_rate: float = 0
    recommended_raw_input: float = 0


class RequirementResponse(BaseModel):
    product_line: str
    scope: RequirementScope
    days: List[DayRequirement] = []
    units: List[UnitRequirement] = []
    dishes: List[DishRequirement] = []
    summary: RequirementSummary


class IngredientSummaryItem(BaseModel):
    product_id: Optional[int] = None
    ingredient_name: str
    category: str
    unit: str = "kg"
    total_quantity: float = 0
    dishes: List[str] = []


class DailyIngredientSummary(BaseModel):
    """某天菜单配料汇总（按就餐人数折算）"""
    date: DateType
    day_of_week: str
    personnel_count: int = 0
    ingredients: List[IngredientSummaryItem] = []
