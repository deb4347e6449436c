"""
定时任务调度器服务
使用 APScheduler 每天重新计算库存批次的过期状态
"""

import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.exc import SQLAlchemyError

from food_station.core.config import settings
from food_station.db import session as db_session
from food_station.services.inventory_alerts import refresh_expiry_status

logger = logging.getLogger(__name__)

# 全局调度器实例
scheduler: Optional[AsyncIOScheduler] = None


async def refresh_expiry_job():
    """执行保质期刷新任务"""
    try:
        async with db_session.SessionLocal() as db:
            result = await refresh_expiry_status(db)
        logger.info(f"✅ 定时保质期刷新完成: 变更 {result['updated']}/{result['checked']} 个批次")
    except SQLAlchemyError as e:
        logger.error(f"❌ 定时保质期刷新失败: {str(e)}")


def init_scheduler():
    """初始化并启动调度器"""
    global scheduler

    if not settings.EXPIRY_REFRESH_ENABLED:
        logger.info("🕒 保质期定时刷新已禁用")
        return

    scheduler = AsyncIOScheduler()

    # 默认每天 00:05 执行
    scheduler.add_job(
        refresh_expiry_job,
        trigger=CronTrigger(
            hour=settings.EXPIRY_REFRESH_HOUR,
            minute=settings.EXPIRY_REFRESH_MINUTE
        ),
        id="refresh_expiry",
        name="库存保质期刷新",
        replace_existing=True
    )

    scheduler.start()
    logger.info(
        f"⏰ 定时任务调度器已启动 - 保质期刷新时间: 每天 "
        f"{settings.EXPIRY_REFRESH_HOUR:02d}:{settings.EXPIRY_REFRESH_MINUTE:02d}"
    )


def shutdown_scheduler():
    """关闭调度器"""
    global scheduler
    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("⏰ 定时任务调度器已关闭")


def get_scheduler_status() -> dict:
    """获取调度器状态"""
    if not scheduler:
        return {
            "enabled": settings.EXPIRY_REFRESH_ENABLED,
            "running": False,
            "jobs": []
        }

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None
        })

    return {
        "enabled": settings.EXPIRY_REFRESH_ENABLED,
        "running": scheduler.running,
        "jobs": jobs
    }
