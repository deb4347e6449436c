"""粮食食品（LTTP）商品模型 - 库存批次和菜品配料都引用它"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from food_station.db.base import Base


class Product(Base):
    """商品 - 豆腐、豆芽、大豆、猪肉等"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True, comment="品名")
    category = Column(String(50), comment="分类名称")
    unit = Column(String(20), nullable=False, default="kg", comment="计量单位")
    is_active = Column(Boolean, default=True, comment="是否启用")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lots = relationship("InventoryLot", back_populates="product")

    def __repr__(self):
        return f"<Product {self.id}: {self.name}>"
