"""菜单建议 Schema"""

from datetime import date as DateType
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from food_station.schemas.inventory import AlertEntry


class IngredientAnalysis(BaseModel):
    product_id: Optional[int] = None
    ingredient_name: str
    required_quantity: float = 0
    available_quantity: float = 0
    unit: str = "kg"
    days_until_expiry: int
    status: str  # sufficient / insufficient / expiring_soon / expired


class DishSuggestion(BaseModel):
    dish_id: int
    dish_name: str
    category: Optional[str] = None
    priority: str  # high / medium
    reason: str
    ingredients: List[IngredientAnalysis] = []
    estimated_cost: float = 0
    suitable_for_units: List[int] = []


class DailyPlanRequest(BaseModel):
    date: DateType = Field(..., description="计划日期")
    budget_per_person: Optional[Decimal] = Field(None, gt=0, description="人均预算，空则用默认值")
    unit_ids: Optional[List[int]] = Field(None, description="只统计这些单位的人数")


class DailyPlanResponse(BaseModel):
    date: Optional[DateType] = None
    total_personnel: int = 0
    meals: Dict[str, List[DishSuggestion]] = {}
    total_cost: float = 0
    budget_per_person: float = 0
    daily_budget: float = 0
    budget_usage: float = 0
    budget_status: str  # under / within / over


class MenuPlanningOverview(BaseModel):
    date: DateType
    total_personnel: int = 0
    total_products: int = 0
    total_non_expired_quantity: float = 0
    total_expired_quantity: float = 0
    critical_alerts: int = 0
    suggestions: List[DishSuggestion] = []
    alerts: List[AlertEntry] = []
