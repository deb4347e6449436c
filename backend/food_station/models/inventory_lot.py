"""
食品库存批次模型 - 每次入库一个批次，独立追踪保质期
支持：
- 批次保质期（不同批次到期时间不同）
- 过期/未过期数量拆分（到期后整批转为过期）
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from food_station.db.base import Base


class InventoryLot(Base):
    """食品库存批次"""
    __tablename__ = "inventory_lots"

    id = Column(Integer, primary_key=True, index=True)

    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    # 数量（按 kg 计）
    quantity = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="批次数量")
    # 不变量：non_expired_quantity + expired_quantity == quantity
    non_expired_quantity = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="未过期数量")
    expired_quantity = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="已过期数量")

    processing_date = Column(DateTime, comment="加工/入库日期")
    expiry_date = Column(DateTime, index=True, comment="到期时间")

    note = Column(Text, comment="备注")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", back_populates="lots")

    def __repr__(self):
        return f"<InventoryLot {self.id}: product={self.product_id} {self.non_expired_quantity}/{self.quantity}>"

    @property
    def is_expired(self) -> bool:
        return (self.expired_quantity or Decimal("0")) > 0

    def refresh_expiry(self, now: datetime) -> bool:
        """按当前时间重新拆分过期/未过期数量，返回是否有变化"""
        quantity = self.quantity or Decimal("0")
        if self.expiry_date is not None and self.expiry_date <= now:
            non_expired, expired = Decimal("0"), quantity
        else:
            non_expired, expired = quantity, Decimal("0")

        changed = (self.non_expired_quantity, self.expired_quantity) != (non_expired, expired)
        self.non_expired_quantity = non_expired
        self.expired_quantity = expired
        return changed
