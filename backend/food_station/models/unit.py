"""单位模型 - 就餐单位（连、营等）及每日人数"""

from sqlalchemy import Column, Integer, String, Date, ForeignKey, DateTime, UniqueConstraint, func
from sqlalchemy.orm import relationship
from food_station.db.base import Base


class Unit(Base):
    """就餐单位

    default_personnel 为编制人数，某天有 UnitPersonnelDaily 记录时以当天记录为准
    """
    __tablename__ = "units"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, comment="单位名称")
    code = Column(String(50), unique=True, comment="单位编码")
    default_personnel = Column(Integer, default=0, comment="编制人数")
    # active / inactive
    status = Column(String(20), default="active", index=True, comment="状态")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    personnel_overrides = relationship(
        "UnitPersonnelDaily", back_populates="unit", cascade="all, delete-orphan"
    )


class UnitPersonnelDaily(Base):
    """单位每日实际人数"""
    __tablename__ = "unit_personnel_daily"
    __table_args__ = (
        UniqueConstraint('unit_id', 'date', name='uq_unit_personnel_date'),
    )

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    personnel = Column(Integer, nullable=False, default=0, comment="当天人数")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    unit = relationship("Unit", back_populates="personnel_overrides")
