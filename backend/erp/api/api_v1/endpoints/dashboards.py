"""仪表盘API"""

from typing import Any, List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.deps import get_db, get_tenant_id
from erp.models import Dashboard, DashboardWidget
from erp.schemas.common import MessageResponse
from erp.schemas.dashboard import (
    DashboardCreate, DashboardUpdate, DashboardResponse,
    WidgetCreate, WidgetUpdate, WidgetResponse
)

router = APIRouter()


async def get_dashboard_or_404(db: AsyncSession, tenant_id: int, dashboard_id: int) -> Dashboard:
    result = await db.execute(
        select(Dashboard)
        .options(selectinload(Dashboard.widgets))
        .where(Dashboard.id == dashboard_id, Dashboard.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )
    dashboard = result.scalar_one_or_none()
    if not dashboard:
        raise HTTPException(status_code=404, detail=f"仪表盘不存在: {dashboard_id}")
    return dashboard


async def get_widget_or_404(db: AsyncSession, dashboard: Dashboard, widget_id: int) -> DashboardWidget:
    widget = await db.get(DashboardWidget, widget_id)
    if not widget or widget.dashboard_id != dashboard.id:
        raise HTTPException(status_code=404, detail=f"组件不存在: {widget_id}")
    return widget


@router.get("/", response_model=List[DashboardResponse])
async def list_dashboards(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    include_system: bool = Query(False, description="是否包含系统仪表盘"),
) -> Any:
    """仪表盘列表"""
    query = select(Dashboard).options(selectinload(Dashboard.widgets)).where(
        Dashboard.tenant_id == tenant_id,
        Dashboard.is_active == True
    )
    if not include_system:
        query = query.where(Dashboard.is_system == False)
    result = await db.execute(query.order_by(Dashboard.is_default.desc(), Dashboard.name))
    return [DashboardResponse.model_validate(d) for d in result.scalars().all()]


@router.post("/", response_model=DashboardResponse)
async def create_dashboard(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    dashboard_in: DashboardCreate,
) -> Any:
    """创建仪表盘（可同时创建组件）"""
    dashboard = Dashboard(**dashboard_in.model_dump(exclude={"widgets"}), tenant_id=tenant_id)
    dashboard.widgets = [DashboardWidget(**w.model_dump()) for w in dashboard_in.widgets]
    db.add(dashboard)
    await db.commit()
    return DashboardResponse.model_validate(await get_dashboard_or_404(db, tenant_id, dashboard.id))


@router.get("/{dashboard_id}", response_model=DashboardResponse)
async def get_dashboard(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    dashboard_id: int,
) -> Any:
    """仪表盘详情，组件按 (position_y, position_x) 排序"""
    return DashboardResponse.model_validate(await get_dashboard_or_404(db, tenant_id, dashboard_id))


@router.put("/{dashboard_id}", response_model=DashboardResponse)
async def update_dashboard(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    dashboard_id: int,
    dashboard_in: DashboardUpdate,
) -> Any:
    """更新仪表盘，传入 widgets 时整体替换组件"""
    dashboard = await get_dashboard_or_404(db, tenant_id, dashboard_id)
    for field, value in dashboard_in.model_dump(exclude_unset=True, exclude={"widgets"}).items():
        setattr(dashboard, field, value)
    if dashboard_in.widgets is not None:
        dashboard.widgets = [DashboardWidget(**w.model_dump()) for w in dashboard_in.widgets]
    await db.commit()
    return DashboardResponse.model_validate(await get_dashboard_or_404(db, tenant_id, dashboard_id))


@router.delete("/{dashboard_id}", response_model=MessageResponse)
async def delete_dashboard(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    dashboard_id: int,
) -> Any:
    """删除仪表盘，系统仪表盘不能删除"""
    dashboard = await get_dashboard_or_404(db, tenant_id, dashboard_id)
    if dashboard.is_system:
        raise HTTPException(status_code=400, detail="系统仪表盘不能删除")
    await db.delete(dashboard)
    await db.commit()
    return MessageResponse(message="删除成功")


@router.post("/{dashboard_id}/widgets", response_model=WidgetResponse)
async def add_widget(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    dashboard_id: int,
    widget_in: WidgetCreate,
) -> Any:
    """新增组件"""
    dashboard = await get_dashboard_or_404(db, tenant_id, dashboard_id)
    widget = DashboardWidget(**widget_in.model_dump(), dashboard_id=dashboard.id)
    db.add(widget)
    await db.commit()
    await db.refresh(widget)
    return WidgetResponse.model_validate(widget)


@router.put("/{dashboard_id}/widgets/{widget_id}", response_model=WidgetResponse)
async def update_widget(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    dashboard_id: int,
    widget_id: int,
    widget_in: WidgetUpdate,
) -> Any:
    """更新组件"""
    dashboard = await get_dashboard_or_404(db, tenant_id, dashboard_id)
    widget = await get_widget_or_404(db, dashboard, widget_id)
    for field, value in widget_in.model_dump(exclude_unset=True).items():
        setattr(widget, field, value)
    await db.commit()
    await db.refresh(widget)
    return WidgetResponse.model_validate(widget)


@router.delete("/{dashboard_id}/widgets/{widget_id}", response_model=MessageResponse)
async def delete_widget(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    dashboard_id: int,
    widget_id: int,
) -> Any:
    """删除组件"""
    dashboard = await get_dashboard_or_404(db, tenant_id, dashboard_id)
    widget = await get_widget_or_404(db, dashboard, widget_id)
    await db.delete(widget)
    await db.commit()
    return MessageResponse(message="删除成功")
