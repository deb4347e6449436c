"""伙食标准价格表 - 菜品成本估算用"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DateTime, DECIMAL
from food_station.db.base import Base


class DailyRation(Base):
    __tablename__ = "daily_rations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True, comment="品名")
    category = Column(String(50), comment="分类")
    unit = Column(String(20), default="kg", comment="单位")
    price_per_unit = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="单价")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<DailyRation {self.name}: {self.price_per_unit}>"
