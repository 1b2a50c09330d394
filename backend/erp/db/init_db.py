import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.config import settings
from erp.db.base import Base
from erp.db.session import engine, SessionLocal

# 导入 models 包即注册所有表
from erp.models import Tenant

logger = logging.getLogger(__name__)


async def ensure_tables_exist() -> None:
    """
    确保数据库表存在（应用启动时调用）
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ensure_default_tenant(db: AsyncSession) -> Tenant:
    """
    确保默认租户存在，未携带租户头的请求都归属该租户
    """
    tenant = await db.get(Tenant, settings.DEFAULT_TENANT_ID)
    if tenant:
        return tenant

    tenant = Tenant(
        id=settings.DEFAULT_TENANT_ID,
        name=settings.DEFAULT_TENANT_NAME,
        plan="standard",
        settings={"currency": "USD", "date_format": "MM/DD/YYYY"},
        is_active=True,
    )
    db.add(tenant)
    await db.commit()
    logger.info(f"🏢 已创建默认租户: {tenant.name} (id={tenant.id})")
    return tenant


async def init_db() -> None:
    """
    初始化数据库 - 创建所有表并写入默认租户
    """
    await ensure_tables_exist()
    async with SessionLocal() as db:
        await ensure_default_tenant(db)


if __name__ == "__main__":
    asyncio.run(init_db())
