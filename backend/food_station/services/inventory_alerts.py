"""
库存保质期预警

按商品汇总各批次，计算距到期天数，按规则（先匹配先生效）给出预警级别和处理建议：
1. 有过期数量          → critical  立即处理过期库存
2. 3 天内到期          → critical  3 天内优先使用
3. 7 天内到期          → warning   本周内安排使用
4. 未过期数量低于阈值  → warning   库存不足，考虑补货
5. 其他                → info      不进入预警列表
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from food_station.core.config import settings
from food_station.core.numbers import ZERO
from food_station.models.inventory_lot import InventoryLot

logger = logging.getLogger(__name__)

LEVEL_CRITICAL = "critical"
LEVEL_WARNING = "warning"
LEVEL_INFO = "info"

_LEVEL_ORDER = {LEVEL_CRITICAL: 0, LEVEL_WARNING: 1, LEVEL_INFO: 2}

ACTION_DISPOSE = "dispose of expired stock immediately"
ACTION_USE_SOON = "prioritize use within 3 days"
ACTION_PLAN_WEEK = "plan usage within the week"
ACTION_RESTOCK = "stock is low, consider restocking"
ACTION_NONE = "no action needed"


@dataclass
class InventoryItem:
    """单个商品的库存汇总"""
    product_id: int
    product_name: str
    category: Optional[str] = None
    unit: str = "kg"
    total_quantity: Decimal = ZERO
    non_expired_quantity: Decimal = ZERO
    expired_quantity: Decimal = ZERO
    earliest_expiry: Optional[datetime] = None
    lots: List[Dict[str, Any]] = field(default_factory=list)


def days_until_expiry(
    expiry: Optional[datetime], now: datetime, default: Optional[int] = None
) -> int:
    """向上取整的剩余天数，没有到期日时取默认值"""
    if expiry is None:
        return settings.DEFAULT_DAYS_UNTIL_EXPIRY if default is None else default
    return math.ceil((expiry - now).total_seconds() / 86400)


def aggregate_lots(lots: Iterable[InventoryLot]) -> List[InventoryItem]:
    """
    批次按商品汇总

    最早到期日优先取还有未过期数量的批次
    """
    items: Dict[int, InventoryItem] = {}
    fallback_expiry: Dict[int, datetime] = {}
    for lot in lots:
        product = lot.product
        item = items.get(lot.product_id)
        if item is None:
            item = InventoryItem(
                product_id=lot.product_id,
                product_name=product.name if product is not None else f"#{lot.product_id}",
                category=product.category if product is not None else None,
                unit=product.unit if product is not None else "kg",
            )
            items[lot.product_id] = item

        non_expired = Decimal(lot.non_expired_quantity or 0)
        item.total_quantity += Decimal(lot.quantity or 0)
        item.non_expired_quantity += non_expired
        item.expired_quantity += Decimal(lot.expired_quantity or 0)

        if lot.expiry_date is not None:
            if non_expired > 0 and (item.earliest_expiry is None or lot.expiry_date < item.earliest_expiry):
                item.earliest_expiry = lot.expiry_date
            current = fallback_expiry.get(lot.product_id)
            if current is None or lot.expiry_date < current:
                fallback_expiry[lot.product_id] = lot.expiry_date

        item.lots.append({
            "lot_id": lot.id,
            "quantity": lot.quantity,
            "non_expired_quantity": lot.non_expired_quantity,
            "expired_quantity": lot.expired_quantity,
            "processing_date": lot.processing_date,
            "expiry_date": lot.expiry_date,
            "note": lot.note,
        })

    for product_id, item in items.items():
        if item.earliest_expiry is None:
            item.earliest_expiry = fallback_expiry.get(product_id)
    return sorted(items.values(), key=lambda i: (i.category or "", i.product_name))


def classify_level(
    item: InventoryItem, now: datetime, threshold: Optional[Decimal] = None
) -> Tuple[str, str, int]:
    """返回 (级别, 处理建议, 距到期天数)，每个商品必落入一个级别"""
    threshold = Decimal(settings.LOW_STOCK_THRESHOLD if threshold is None else threshold)
    days = days_until_expiry(item.earliest_expiry, now)

    if item.expired_quantity > 0:
        return LEVEL_CRITICAL, ACTION_DISPOSE, days
    if days <= 3:
        return LEVEL_CRITICAL, ACTION_USE_SOON, days
    if days <= 7:
        return LEVEL_WARNING, ACTION_PLAN_WEEK, days
    if item.non_expired_quantity < threshold:
        return LEVEL_WARNING, ACTION_RESTOCK, days
    return LEVEL_INFO, ACTION_NONE, days


def classify(
    items: Iterable[InventoryItem], now: datetime, threshold: Optional[Decimal] = None
) -> List[Dict[str, Any]]:
    """只返回 critical / warning，critical 在前（同级保持原顺序）"""
    alerts = []
    for item in items:
        level, action, days = classify_level(item, now, threshold)
        if level == LEVEL_INFO:
            continue
        alerts.append({
            "product_id": item.product_id,
            "product_name": item.product_name,
            "category": item.category,
            "unit": item.unit,
            "level": level,
            "action": action,
            "days_until_expiry": days,
            "expiry_date": item.earliest_expiry,
            "total_quantity": item.total_quantity,
            "non_expired_quantity": item.non_expired_quantity,
            "expired_quantity": item.expired_quantity,
        })
    alerts.sort(key=lambda a: _LEVEL_ORDER[a["level"]])
    return alerts


async def load_lots(db: AsyncSession) -> List[InventoryLot]:
    result = await db.execute(
        select(InventoryLot).options(selectinload(InventoryLot.product)).order_by(InventoryLot.id)
    )
    return list(result.scalars().all())


async def load_inventory(db: AsyncSession) -> List[InventoryItem]:
    return aggregate_lots(await load_lots(db))


async def refresh_expiry_status(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
    """按当前时间重新拆分所有批次的过期/未过期数量"""
    now = now or datetime.now()
    try:
        lots = await load_lots(db)
        updated = sum(1 for lot in lots if lot.refresh_expiry(now))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"❌ 更新保质期状态失败: {e}")
        raise

    logger.info(f"🕒 保质期状态已更新: 检查 {len(lots)} 个批次，变更 {updated} 个")
    return {"checked": len(lots), "updated": updated}
