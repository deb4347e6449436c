# models包初始化文件

from food_station.models.product import Product
from food_station.models.inventory_lot import InventoryLot
from food_station.models.daily_ration import DailyRation
from food_station.models.unit import Unit, UnitPersonnelDaily
from food_station.models.menu import Menu, DailyMenu, Meal, meal_dishes
from food_station.models.dish import Dish, DishIngredient
from food_station.models.processing_ledger import ProcessingLedgerEntry

__all__ = [
    "Product",
    "InventoryLot",
    "DailyRation",
    "Unit",
    "UnitPersonnelDaily",
    "Menu",
    "DailyMenu",
    "Meal",
    "meal_dishes",
    "Dish",
    "DishIngredient",
    "ProcessingLedgerEntry",
]
