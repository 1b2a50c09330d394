"""
定时任务调度器服务
使用 APScheduler 实现付款计划逾期检查等定时任务
"""

import logging
from datetime import datetime
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select

from erp.core.config import settings
from erp.db.session import SessionLocal
from erp.models import Tenant
from erp.services.inventory import count_low_inventory_products
from erp.services.vendors import mark_overdue_payment_schedules

logger = logging.getLogger(__name__)

# 全局调度器实例
scheduler: Optional[AsyncIOScheduler] = None


async def daily_check():
    """每日检查：标记逾期付款计划，统计各租户低库存商品"""
    try:
        async with SessionLocal() as db:
            marked = await mark_overdue_payment_schedules(db, datetime.utcnow())
            await db.commit()
            if marked:
                logger.info(f"⏰ 已标记逾期付款计划: {marked} 条")

            tenants = (await db.execute(
                select(Tenant).where(Tenant.is_active == True)
            )).scalars().all()
            for tenant in tenants:
                low = await count_low_inventory_products(db, tenant.id)
                if low:
                    logger.warning(f"⚠️ 租户 {tenant.name} 有 {low} 个商品库存不足")
    except Exception as e:
        logger.error(f"❌ 每日检查失败: {str(e)}")


def init_scheduler():
    """初始化并启动调度器"""
    global scheduler

    if not settings.SCHEDULER_ENABLED:
        logger.info("⏰ 定时任务已禁用")
        return

    scheduler = AsyncIOScheduler()

    # 默认每天凌晨 2 点执行
    scheduler.add_job(
        daily_check,
        trigger=CronTrigger(
            hour=settings.OVERDUE_CHECK_HOUR,
            minute=settings.OVERDUE_CHECK_MINUTE
        ),
        id="daily_check",
        name="付款逾期与低库存检查",
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"⏰ 定时任务调度器已启动 - 每日检查时间: {settings.OVERDUE_CHECK_HOUR:02d}:{settings.OVERDUE_CHECK_MINUTE:02d}")


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
            "enabled": settings.SCHEDULER_ENABLED,
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
        "enabled": settings.SCHEDULER_ENABLED,
        "running": scheduler.running,
        "jobs": jobs
    }
