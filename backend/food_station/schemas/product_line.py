"""产品线 Schema"""

from typing import List, Optional
from pydantic import BaseModel


class ProductLineResponse(BaseModel):
    """产品线配置"""
    code: str
    name: str
    raw_material_name: str
    derived_product_name: str
    byproduct_name: Optional[str] = None
    conversion_rate: float  # 每 kg 原料产出成品 kg
    raw_price: float
    derived_price: float
    byproduct_price: float
    ingredient_names: List[str] = []
