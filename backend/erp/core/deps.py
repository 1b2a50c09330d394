"""依赖注入 - 数据库会话与租户解析（无登录认证）"""
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.config import settings
from erp.db.session import SessionLocal
from erp.models import Tenant


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取数据库会话依赖
    """
    async with SessionLocal() as session:
        yield session


async def get_tenant_id(
    x_tenant_id: Optional[int] = Header(None, alias="X-Tenant-ID"),
    db: AsyncSession = Depends(get_db),
) -> int:
    """
    解析当前租户

    请求头 X-Tenant-ID 指定租户，未指定时使用默认租户。
    租户不存在返回 404，已停用返回 403。
    """
    tenant_id = x_tenant_id if x_tenant_id is not None else settings.DEFAULT_TENANT_ID
    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail=f"租户不存在: {tenant_id}")
    if not tenant.is_active:
        raise HTTPException(status_code=403, detail="租户已停用")
    return tenant_id
