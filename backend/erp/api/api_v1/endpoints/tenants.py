"""租户管理API"""

from typing import Any, List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.config import settings
from erp.core.deps import get_db, get_tenant_id
from erp.models import Tenant
from erp.schemas.common import MessageResponse
from erp.schemas.tenant import TenantCreate, TenantUpdate, TenantResponse

router = APIRouter()


async def get_tenant_or_404(db: AsyncSession, tenant_id: int) -> Tenant:
    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail=f"租户不存在: {tenant_id}")
    return tenant


async def ensure_domain_unique(db: AsyncSession, domain: str, exclude_id: int = None) -> None:
    query = select(func.count(Tenant.id)).where(Tenant.domain == domain)
    if exclude_id is not None:
        query = query.where(Tenant.id != exclude_id)
    if ((await db.execute(query)).scalar() or 0) > 0:
        raise HTTPException(status_code=409, detail=f"域名已被使用: {domain}")


@router.get("/", response_model=List[TenantResponse])
async def list_tenants(
    *,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """租户列表"""
    result = await db.execute(select(Tenant).order_by(Tenant.id))
    return [TenantResponse.model_validate(t) for t in result.scalars().all()]


@router.get("/current", response_model=TenantResponse)
async def get_current_tenant(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
) -> Any:
    """当前请求所属租户"""
    return TenantResponse.model_validate(await get_tenant_or_404(db, tenant_id))


@router.post("/", response_model=TenantResponse)
async def create_tenant(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_in: TenantCreate,
) -> Any:
    """创建租户"""
    if tenant_in.domain:
        await ensure_domain_unique(db, tenant_in.domain)
    tenant = Tenant(**tenant_in.model_dump())
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    return TenantResponse.model_validate(tenant)


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int,
) -> Any:
    """租户详情"""
    return TenantResponse.model_validate(await get_tenant_or_404(db, tenant_id))


@router.put("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int,
    tenant_in: TenantUpdate,
) -> Any:
    """更新租户"""
    tenant = await get_tenant_or_404(db, tenant_id)
    update_data = tenant_in.model_dump(exclude_unset=True)
    if update_data.get("domain") and update_data["domain"] != tenant.domain:
        await ensure_domain_unique(db, update_data["domain"], exclude_id=tenant.id)
    for field, value in update_data.items():
        setattr(tenant, field, value)
    await db.commit()
    await db.refresh(tenant)
    return TenantResponse.model_validate(tenant)


@router.delete("/{tenant_id}", response_model=MessageResponse)
async def delete_tenant(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int,
) -> Any:
    """删除租户（默认租户不能删除）"""
    if tenant_id == settings.DEFAULT_TENANT_ID:
        raise HTTPException(status_code=400, detail="默认租户不能删除")
    tenant = await get_tenant_or_404(db, tenant_id)
    await db.delete(tenant)
    await db.commit()
    return MessageResponse(message="删除成功")
