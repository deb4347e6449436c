"""库存与预警 Schema"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class InventoryLotItem(BaseModel):
    lot_id: int
    quantity: float = 0
    non_expired_quantity: float = 0
    expired_quantity: float = 0
    processing_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    note: Optional[str] = None


class InventoryProductResponse(BaseModel):
    """按商品汇总的库存"""
    product_id: int
    product_name: str
    category: Optional[str] = None
    unit: str = "kg"
    total_quantity: float = 0
    non_expired_quantity: float = 0
    expired_quantity: float = 0
    earliest_expiry: Optional[datetime] = None
    lots: List[InventoryLotItem] = []


class ExpiryRefreshResponse(BaseModel):
    checked: int = 0
    updated: int = 0


class AlertEntry(BaseModel):
    """库存预警（只有 critical / warning）"""
    product_id: int
    product_name: str
    category: Optional[str] = None
    unit: str = "kg"
    level: str
    action: str
    days_until_expiry: int
    expiry_date: Optional[datetime] = None
    total_quantity: float = 0
    non_expired_quantity: float = 0
    expired_quantity: float = 0
