"""日期工具 - 周、月的日期区间换算，统一抛出 ValidationError"""

import calendar
from datetime import date, datetime, timedelta
from typing import List, Tuple, Union

from food_station.core.config import settings
from food_station.core.errors import ValidationError

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def parse_date(value: Union[str, date, datetime]) -> date:
    """解析 YYYY-MM-DD，datetime 取日期部分"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"日期格式不正确: {value!r}，应为 YYYY-MM-DD")


def validate_year(year: int) -> int:
    if year < settings.MIN_YEAR or year > settings.MAX_YEAR:
        raise ValidationError(f"年份必须在 {settings.MIN_YEAR}-{settings.MAX_YEAR} 之间")
    return year


def week_dates(week: int, year: int) -> List[date]:
    """ISO 周的 7 天（周一到周日）"""
    validate_year(year)
    if week < 1 or week > 53:
        raise ValidationError("周数必须在 1-53 之间")
    try:
        monday = date.fromisocalendar(year, week, 1)
    except ValueError:
        raise ValidationError(f"{year} 年没有第 {week} 周")
    return [monday + timedelta(days=i) for i in range(7)]


def month_range(year: int, month: int) -> Tuple[date, date]:
    """月份的第一天和最后一天"""
    if month < 1 or month > 12:
        raise ValidationError("月份必须在 1-12 之间")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def shift_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    """(year, month) 向前/向后移动 offset 个月"""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def day_name(d: date) -> str:
    return DAY_NAMES[d.weekday()]
