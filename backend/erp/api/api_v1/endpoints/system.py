"""系统API - 演示数据、定时任务状态"""

from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.deps import get_db
from erp.db.seed import seed_demo_data
from erp.services.scheduler import get_scheduler_status

router = APIRouter()


@router.post("/seed")
async def seed(
    *,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """写入演示数据（可重复调用）"""
    return await seed_demo_data(db)


@router.get("/system/scheduler")
async def scheduler_status() -> Any:
    """定时任务状态"""
    return get_scheduler_status()
