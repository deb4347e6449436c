"""
加工台账模型 - 每条产品线每天一行

数量都按 kg 计，金额按当地货币，效率保留 4 位小数
结转状态：
- no_record: 前一天没有台账，结转 0
- zero: 前一天有台账，剩余为 0
- carried: 前一天有剩余，已结转
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, DECIMAL, UniqueConstraint
from food_station.db.base import Base

CARRY_NO_RECORD = "no_record"
CARRY_ZERO = "zero"
CARRY_CARRIED = "carried"


class ProcessingLedgerEntry(Base):
    """加工台账"""
    __tablename__ = "processing_ledger"
    __table_args__ = (
        UniqueConstraint('product_line', 'date', name='uq_ledger_line_date'),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_line = Column(String(50), nullable=False, index=True, comment="产品线编码")
    date = Column(Date, nullable=False, index=True, comment="台账日期")

    # ========== 数量 ==========
    raw_input = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="原料投入")
    derived_collected = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="成品产出")
    derived_dispatched = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="成品出库")
    carried_over = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="上日结转")
    carry_over_state = Column(String(20), nullable=False, default=CARRY_NO_RECORD, comment="结转状态")
    derived_remaining = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="成品结余")
    byproduct_quantity = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="副产品数量")

    # ========== 当日单价 ==========
    raw_price = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    derived_price = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    byproduct_price = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    other_costs = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="其他费用")

    # ========== 计算结果 ==========
    processing_efficiency = Column(DECIMAL(10, 4), nullable=False, default=Decimal("0.0000"), comment="产出/投入")
    revenue = Column(DECIMAL(14, 2), nullable=False, default=Decimal("0.00"))
    cost = Column(DECIMAL(14, 2), nullable=False, default=Decimal("0.00"))
    net_profit = Column(DECIMAL(14, 2), nullable=False, default=Decimal("0.00"))

    note = Column(Text, comment="备注")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ProcessingLedgerEntry {self.product_line} {self.date}: remaining={self.derived_remaining}>"
