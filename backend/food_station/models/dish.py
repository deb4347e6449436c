"""菜品模型 - 配料数量按 servings 份计，不是按人"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from food_station.db.base import Base


class Dish(Base):
    __tablename__ = "dishes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    category = Column(String(50), comment="菜品分类")
    servings = Column(Integer, default=1, comment="配料对应的份数")

    created_at = Column(DateTime, default=datetime.utcnow)

    ingredients = relationship(
        "DishIngredient", back_populates="dish", cascade="all, delete-orphan", order_by="DishIngredient.id"
    )


class DishIngredient(Base):
    """菜品配料行

    product_id 为空的是旧数据（只有名称），匹配时按名称模糊匹配
    """
    __tablename__ = "dish_ingredients"

    id = Column(Integer, primary_key=True, index=True)
    dish_id = Column(Integer, ForeignKey("dishes.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True, index=True)
    ingredient_name = Column(String(100), nullable=False)
    quantity = Column(DECIMAL(12, 3), nullable=False, default=Decimal("0"), comment="servings 份的用量")
    unit = Column(String(20), default="kg")

    dish = relationship("Dish", back_populates="ingredients")
    product = relationship("Product")
