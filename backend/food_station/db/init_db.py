import asyncio

from food_station.db.session import engine
from food_station.db.base import Base

# 导入所有模型，确保表能被创建
import food_station.models  # noqa: F401


async def ensure_tables_exist() -> None:
    """
    确保数据库表存在（应用启动时调用）
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def reset_tables() -> None:
    """
    删除并重建所有表（测试与演示环境使用）
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


if __name__ == "__main__":
    asyncio.run(ensure_tables_exist())
