"""
菜单模型 - 周菜单 → 每日菜单 → 餐次 → 菜品
由菜单编制流程维护，加工站只读
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Table, UniqueConstraint
from sqlalchemy.orm import relationship
from food_station.db.base import Base

MEAL_TYPES = ("morning", "noon", "evening")

# 餐次-菜品 多对多
meal_dishes = Table(
    "meal_dishes",
    Base.metadata,
    Column("meal_id", Integer, ForeignKey("meals.id"), primary_key=True),
    Column("dish_id", Integer, ForeignKey("dishes.id"), primary_key=True),
)


class Menu(Base):
    """周菜单"""
    __tablename__ = "menus"
    __table_args__ = (
        UniqueConstraint('week', 'year', name='uq_menu_week_year'),
    )

    id = Column(Integer, primary_key=True, index=True)
    week = Column(Integer, nullable=False, comment="ISO 周数")
    year = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    # draft / approved
    status = Column(String(20), default="draft")

    created_at = Column(DateTime, default=datetime.utcnow)

    daily_menus = relationship(
        "DailyMenu", back_populates="menu", cascade="all, delete-orphan", order_by="DailyMenu.date"
    )


class DailyMenu(Base):
    """每日菜单"""
    __tablename__ = "daily_menus"

    id = Column(Integer, primary_key=True, index=True)
    menu_id = Column(Integer, ForeignKey("menus.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    personnel_count = Column(Integer, default=0, comment="就餐人数")
    status = Column(String(20), default="draft")

    menu = relationship("Menu", back_populates="daily_menus")
    meals = relationship("Meal", back_populates="daily_menu", cascade="all, delete-orphan")


class Meal(Base):
    """餐次：morning / noon / evening"""
    __tablename__ = "meals"

    id = Column(Integer, primary_key=True, index=True)
    daily_menu_id = Column(Integer, ForeignKey("daily_menus.id"), nullable=False, index=True)
    meal_type = Column(String(20), nullable=False)

    daily_menu = relationship("DailyMenu", back_populates="meals")
    dishes = relationship("Dish", secondary=meal_dishes)
