from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
import logging
import os

from food_station.api.api_v1.api import api_router as api_v1_router
from food_station.core.config import settings
from food_station.core.errors import StationError, station_error_handler
from food_station.core.logging_config import setup_logging
from food_station.services.scheduler import init_scheduler, shutdown_scheduler
from food_station.db import session as db_session
from food_station.db.migrations import run_migrations
from food_station.db.init_db import ensure_tables_exist

# 初始化日志系统
log_level = os.getenv("LOG_LEVEL", "INFO")
setup_logging(log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时
    logger.info("🚀 加工站服务启动中...")

    # 确保数据库表存在
    await ensure_tables_exist()
    logger.info("📊 数据库表已就绪")

    # 运行数据库迁移
    try:
        async with db_session.SessionLocal() as db:
            result = await run_migrations(db)

            if result.get("columns_added"):
                logger.info(f"📦 数据库结构更新: 添加了 {len(result['columns_added'])} 个字段")
                for col in result["columns_added"]:
                    logger.info(f"   ✅ {col}")

            if result.get("old_version") != result.get("new_version"):
                logger.info(f"📊 数据库版本: {result.get('old_version') or '初始'} → {result.get('new_version')}")

    except SQLAlchemyError as e:
        logger.warning(f"数据库迁移跳过: {e}")

    init_scheduler()
    yield
    # 关闭时
    logger.info("🛑 加工站服务关闭中...")
    shutdown_scheduler()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    description="食品加工站 - 台账、需求计算、库存预警与菜单建议",
    lifespan=lifespan
)

# 业务异常 → {"detail": ...}
app.add_exception_handler(StationError, station_error_handler)

# CORS配置
if settings.BACKEND_CORS_ORIGINS:
    logger.info(f"配置CORS，允许的源: {settings.BACKEND_CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

logger.info(f"注册API v1路由，前缀: {settings.API_V1_STR}")
app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"message": settings.PROJECT_NAME}


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="info")
