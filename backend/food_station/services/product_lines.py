"""
产品线配置 - 原料到成品的加工类型

每条产品线是一条不可变配置：原料/成品名称、默认转化率、默认单价、配料匹配器。
台账、需求计算、菜单建议都按产品线参数化，不再为每种产品单独写一套逻辑。
"""

import unicodedata
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from food_station.core.errors import ValidationError


def normalize_name(value: Optional[str]) -> str:
    """NFC 归一化 + 大小写折叠，越南语带声调字符也能稳定比较"""
    if not value:
        return ""
    return unicodedata.normalize("NFC", value).casefold().strip()


@dataclass(frozen=True)
class IngredientMatcher:
    """
    配料匹配器

    - 配料行关联了商品 ID 且匹配器已解析出商品 ID 时，以 ID 为准
    - 未关联商品的旧数据按名称子串匹配（不区分大小写）
    """
    names: Tuple[str, ...]
    product_ids: FrozenSet[int] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "names", tuple(normalize_name(n) for n in self.names if normalize_name(n)))
        object.__setattr__(self, "product_ids", frozenset(self.product_ids))

    def matches_name(self, ingredient_name: Optional[str]) -> bool:
        name = normalize_name(ingredient_name)
        if not name:
            return False
        return any(candidate in name for candidate in self.names)

    def matches(self, ingredient_name: Optional[str], product_id: Optional[int] = None) -> bool:
        if product_id is not None and self.product_ids:
            return product_id in self.product_ids
        return self.matches_name(ingredient_name)

    def with_product_ids(self, product_ids: Iterable[int]) -> "IngredientMatcher":
        return replace(self, product_ids=frozenset(product_ids))


@dataclass(frozen=True)
class ProductLine:
    """产品线配置（不可变）"""
    code: str
    name: str
    raw_material_name: str
    derived_product_name: str
    conversion_rate: Decimal  # 每 kg 原料产出的成品 kg
    raw_price: Decimal
    derived_price: Decimal
    byproduct_price: Decimal
    ingredient_matcher: IngredientMatcher
    byproduct_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "raw_material_name": self.raw_material_name,
            "derived_product_name": self.derived_product_name,
            "byproduct_name": self.byproduct_name,
            "conversion_rate": self.conversion_rate,
            "raw_price": self.raw_price,
            "derived_price": self.derived_price,
            "byproduct_price": self.byproduct_price,
            "ingredient_names": list(self.ingredient_matcher.names),
        }


_LINES: List[ProductLine] = [
    ProductLine(
        code="soy_curd",
        name="Soy curd",
        raw_material_name="soybeans",
        derived_product_name="soy curd",
        byproduct_name="okara",
        conversion_rate=Decimal("2.5"),
        raw_price=Decimal("12000"),
        derived_price=Decimal("15000"),
        byproduct_price=Decimal("5000"),
        ingredient_matcher=IngredientMatcher(names=("đậu phụ", "tofu", "soy curd")),
    ),
    ProductLine(
        code="bean_sprouts",
        name="Bean sprouts",
        raw_material_name="mung beans",
        derived_product_name="bean sprouts",
        byproduct_name="bean hulls",
        conversion_rate=Decimal("3.0"),
        raw_price=Decimal("15000"),
        derived_price=Decimal("8000"),
        byproduct_price=Decimal("3000"),
        ingredient_matcher=IngredientMatcher(names=("giá đỗ", "gia do", "giá đậu", "bean sprouts")),
    ),
    ProductLine(
        code="pickled_vegetable",
        name="Pickled vegetables",
        raw_material_name="mustard greens",
        derived_product_name="pickled vegetables",
        byproduct_name="brine",
        conversion_rate=Decimal("0.7"),
        raw_price=Decimal("8000"),
        derived_price=Decimal("12000"),
        byproduct_price=Decimal("2000"),
        ingredient_matcher=IngredientMatcher(
            names=("dưa muối", "muối nén", "dưa chua", "dưa cải", "pickled")
        ),
    ),
    ProductLine(
        code="poultry_meat",
        name="Poultry meat",
        raw_material_name="live poultry",
        derived_product_name="poultry meat",
        conversion_rate=Decimal("0.7"),
        raw_price=Decimal("60000"),
        derived_price=Decimal("150000"),
        byproduct_price=Decimal("0"),
        ingredient_matcher=IngredientMatcher(names=("thịt gà", "thịt vịt", "gia cầm", "poultry", "chicken")),
    ),
    # 生猪屠宰：成品按精肉记账，骨头、碎肉、内脏合并为一个副产品
    ProductLine(
        code="livestock",
        name="Livestock",
        raw_material_name="live pigs",
        derived_product_name="lean meat",
        byproduct_name="bone, ground meat and organs",
        conversion_rate=Decimal("0.4"),
        raw_price=Decimal("70000"),
        derived_price=Decimal("120000"),
        byproduct_price=Decimal("30000"),
        ingredient_matcher=IngredientMatcher(names=("thịt nạc", "thịt lợn", "thịt heo", "lean meat", "pork")),
    ),
    ProductLine(
        code="sausage",
        name="Sausage",
        raw_material_name="lean and fat pork",
        derived_product_name="sausage",
        conversion_rate=Decimal("0.8"),
        raw_price=Decimal("120000"),
        derived_price=Decimal("150000"),
        byproduct_price=Decimal("0"),
        ingredient_matcher=IngredientMatcher(names=("giò lụa", "giò bò", "giò sống", "sausage")),
    ),
    ProductLine(
        code="fish_cake",
        name="Fish cake",
        raw_material_name="fish and pork paste",
        derived_product_name="fish cake",
        conversion_rate=Decimal("0.8"),
        raw_price=Decimal("120000"),
        derived_price=Decimal("140000"),
        byproduct_price=Decimal("0"),
        ingredient_matcher=IngredientMatcher(names=("chả cá", "chả thịt", "fish cake")),
    ),
]

PRODUCT_LINES: Dict[str, ProductLine] = {line.code: line for line in _LINES}


def get_product_line(code: str) -> ProductLine:
    """按编码取产品线，未知编码抛出 ValidationError"""
    line = PRODUCT_LINES.get((code or "").strip().lower().replace("-", "_"))
    if line is None:
        raise ValidationError(
            f"未知的产品线: {code}，可选: {', '.join(PRODUCT_LINES)}"
        )
    return line


def list_product_lines() -> List[ProductLine]:
    return list(PRODUCT_LINES.values())
