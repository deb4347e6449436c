"""加工台账 Schema"""

from datetime import date as DateType, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class LedgerEntryCreate(BaseModel):
    """写入某天台账（同一产品线同一天重复提交为更新）"""
    date: DateType = Field(..., description="台账日期")
    raw_input: Decimal = Field(..., ge=0, description="原料投入（kg）")
    derived_collected: Decimal = Field(..., ge=0, description="成品产出（kg）")
    derived_dispatched: Decimal = Field(..., ge=0, description="成品出库（kg）")
    byproduct_quantity: Decimal = Field(default=Decimal("0"), ge=0, description="副产品数量（kg）")
    raw_price: Optional[Decimal] = Field(None, ge=0, description="原料单价，空则用产品线默认值")
    derived_price: Optional[Decimal] = Field(None, ge=0, description="成品单价，空则用产品线默认值")
    byproduct_price: Optional[Decimal] = Field(None, ge=0, description="副产品单价，空则用产品线默认值")
    other_costs: Decimal = Field(default=Decimal("0"), ge=0, description="其他费用")
    note: Optional[str] = Field("", max_length=500)


class LedgerEntryResponse(BaseModel):
    """单日台账（is_recorded=false 为补零行）"""
    product_line: str
    date: DateType
    day_of_week: str
    is_recorded: bool = True
    raw_input: float = 0
    derived_collected: float = 0
    derived_dispatched: float = 0
    carried_over: float = 0
    carry_over_state: str  # no_record / zero / carried
    derived_remaining: float = 0
    previous_remaining: Optional[float] = None  # 补零行：前一天结余（仅参考）
    byproduct_quantity: float = 0
    raw_price: float = 0
    derived_price: float = 0
    byproduct_price: float = 0
    other_costs: float = 0
    processing_efficiency: float = 0
    revenue: float = 0
    cost: float = 0
    net_profit: float = 0
    note: str = ""
    updated_at: Optional[datetime] = None
    planned_demand: Optional[float] = None  # 当天菜单需求量，无每日菜单时为空


class LedgerTotals(BaseModel):
    total_raw_input: float = 0
    total_derived_collected: float = 0
    total_derived_dispatched: float = 0
    total_byproduct_quantity: float = 0
    total_revenue: float = 0
    total_cost: float = 0
    total_net_profit: float = 0
    recorded_days: int = 0
    average_conversion_rate: float = 0  # 只统计有原料投入的日期


class LedgerWeeklyResponse(BaseModel):
    product_line: str
    week: int
    year: int
    start_date: DateType
    end_date: DateType
    opening_balance: float = 0
    opening_state: str
    closing_balance: float = 0
    days: List[LedgerEntryResponse]
    totals: LedgerTotals


class LedgerMonthSummary(BaseModel):
    """月度汇总，has_data=false 时数值为空"""
    year: int
    month: int
    label: str
    has_data: bool
    total_raw_input: Optional[float] = None
    total_derived_collected: Optional[float] = None
    total_derived_dispatched: Optional[float] = None
    total_byproduct_quantity: Optional[float] = None
    processing_efficiency: Optional[float] = None
    total_revenue: Optional[float] = None
    total_cost: Optional[float] = None
    total_net_profit: Optional[float] = None
    opening_balance: Optional[float] = None
    closing_balance: Optional[float] = None
    recorded_days: int = 0


class LedgerMonthlyResponse(BaseModel):
    product_line: str
    year: int
    month: int
    month_count: int
    months: List[LedgerMonthSummary]


class DishUsage(BaseModel):
    dish_id: int
    name: str
    category: Optional[str] = None
    ingredients: List[str] = []


class LedgerStatisticsResponse(BaseModel):
    """区间加工统计"""
    product_line: str
    start_date: DateType
    end_date: DateType
    processing_days: int = 0
    total_raw_input: float = 0
    total_derived_output: float = 0
    average_conversion_rate: float = 0
    average_daily_output: float = 0
    dishes: List[DishUsage] = []
