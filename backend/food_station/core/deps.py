"""依赖注入 - 单机版（无认证）"""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

from food_station.db import session as db_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取数据库会话依赖
    """
    async with db_session.SessionLocal() as session:
        yield session
