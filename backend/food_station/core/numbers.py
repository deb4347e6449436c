"""数值工具 - Decimal 转换、四舍五入、除零保护"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from food_station.core.errors import ValidationError

ZERO = Decimal("0")
CENT = Decimal("0.01")
RATIO = Decimal("0.0001")


def to_decimal(value: Any, field: str = "数值", allow_negative: bool = False) -> Decimal:
    """转为 Decimal，None/非数字/负数抛出 ValidationError"""
    if value is None or value == "":
        raise ValidationError(f"缺少必填数值: {field}")
    if isinstance(value, bool):
        raise ValidationError(f"{field} 必须是数字")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} 必须是数字: {value!r}")
    if not result.is_finite():
        raise ValidationError(f"{field} 必须是有限数值")
    if not allow_negative and result < 0:
        raise ValidationError(f"{field} 不能为负数")
    return result


def optional_decimal(value: Any, default: Decimal, field: str = "数值") -> Decimal:
    if value is None:
        return default
    return to_decimal(value, field)


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def quantity(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def ratio(value: Decimal) -> Decimal:
    return Decimal(value).quantize(RATIO, rounding=ROUND_HALF_UP)


def safe_div(numerator: Decimal, denominator: Optional[Decimal]) -> Decimal:
    """除数为 0 或空时返回 0"""
    if not denominator:
        return ZERO
    return Decimal(numerator) / Decimal(denominator)
