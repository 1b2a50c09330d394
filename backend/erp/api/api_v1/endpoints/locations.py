"""库位管理API"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.deps import get_db, get_tenant_id
from erp.models import Location
from erp.schemas.common import MessageResponse
from erp.schemas.product import LocationCreate, LocationUpdate, LocationResponse
from erp.services.inventory import get_location_or_404, has_inventory_records

router = APIRouter()


@router.get("/", response_model=List[LocationResponse])
async def list_locations(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    is_active: Optional[bool] = Query(None, description="是否启用"),
) -> Any:
    """获取库位列表"""
    query = select(Location).where(Location.tenant_id == tenant_id)
    if is_active is not None:
        query = query.where(Location.is_active == is_active)
    result = await db.execute(query.order_by(Location.name))
    return [LocationResponse.model_validate(loc) for loc in result.scalars().all()]


@router.post("/", response_model=LocationResponse)
async def create_location(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    location_in: LocationCreate,
) -> Any:
    """创建库位"""
    location = Location(**location_in.model_dump(), tenant_id=tenant_id)
    db.add(location)
    await db.commit()
    await db.refresh(location)
    return LocationResponse.model_validate(location)


@router.get("/{location_id}", response_model=LocationResponse)
async def get_location(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    location_id: int,
) -> Any:
    """获取库位详情"""
    return LocationResponse.model_validate(await get_location_or_404(db, tenant_id, location_id))


@router.put("/{location_id}", response_model=LocationResponse)
async def update_location(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    location_id: int,
    location_in: LocationUpdate,
) -> Any:
    """更新库位"""
    location = await get_location_or_404(db, tenant_id, location_id)
    for field, value in location_in.model_dump(exclude_unset=True).items():
        setattr(location, field, value)
    await db.commit()
    await db.refresh(location)
    return LocationResponse.model_validate(location)


@router.delete("/{location_id}", response_model=MessageResponse)
async def delete_location(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    location_id: int,
) -> Any:
    """删除库位，仍有库存的库位不能删除"""
    location = await get_location_or_404(db, tenant_id, location_id)

    if await has_inventory_records(db, location_id=location_id):
        raise HTTPException(status_code=400, detail="该库位仍有库存，无法删除")

    await db.delete(location)
    await db.commit()
    return MessageResponse(message="删除成功")
