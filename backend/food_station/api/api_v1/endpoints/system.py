"""系统管理API - 调度器和数据库版本状态"""

from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from food_station.core.config import settings
from food_station.core.deps import get_db
from food_station.db.migrations import CURRENT_DB_VERSION, get_db_version
from food_station.services.scheduler import get_scheduler_status

router = APIRouter()


@router.get("/status")
async def get_system_status(
    *,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """调度器状态与数据库版本"""
    return {
        "project": settings.PROJECT_NAME,
        "db_version": await get_db_version(db),
        "current_version": CURRENT_DB_VERSION,
        "scheduler": get_scheduler_status(),
    }
