"""供应商管理API - 供应商、沟通记录、付款计划、绩效"""

from datetime import datetime, timedelta
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.deps import get_db, get_tenant_id
from erp.models import Vendor, PurchaseOrder, VendorCommunicationLog, VendorPaymentSchedule
from erp.schemas.common import MessageResponse
from erp.schemas.vendor import (
    VendorCreate, VendorUpdate, VendorResponse, VendorListResponse, VendorPerformance,
    CommunicationLogCreate, CommunicationLogResponse,
    PaymentScheduleCreate, PaymentScheduleUpdate, PaymentScheduleResponse
)
from erp.services.sales import to_money
from erp.services.vendors import (
    generate_vendor_code, get_vendor_or_404, get_purchase_order_or_404,
    calculate_vendor_performance, get_upcoming_payments
)

router = APIRouter()


async def ensure_vendor_code_unique(
    db: AsyncSession,
    tenant_id: int,
    code: str,
    exclude_id: Optional[int] = None) -> None:
    query = select(func.count(Vendor.id)).where(Vendor.tenant_id == tenant_id, Vendor.code == code)
    if exclude_id is not None:
        query = query.where(Vendor.id != exclude_id)
    if ((await db.execute(query)).scalar() or 0) > 0:
        raise HTTPException(status_code=409, detail=f"供应商编码已存在: {code}")


async def get_schedule_or_404(db: AsyncSession, tenant_id: int, schedule_id: int) -> VendorPaymentSchedule:
    schedule = await db.get(VendorPaymentSchedule, schedule_id)
    if not schedule or schedule.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail=f"付款计划不存在: {schedule_id}")
    return schedule


@router.get("/", response_model=VendorListResponse)
async def list_vendors(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="搜索名称/编码/邮箱/电话/联系人"),
    category: Optional[str] = Query(None, description="分类"),
    status: Optional[str] = Query(None, description="状态"),
) -> Any:
    """获取供应商列表"""
    conditions = [Vendor.tenant_id == tenant_id]
    if category:
        conditions.append(Vendor.category == category)
    if status:
        conditions.append(Vendor.status == status)
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(
            func.lower(Vendor.name).like(pattern),
            func.lower(Vendor.code).like(pattern),
            func.lower(func.coalesce(Vendor.email, "")).like(pattern),
            func.lower(func.coalesce(Vendor.phone, "")).like(pattern),
            func.lower(func.coalesce(Vendor.contact, "")).like(pattern),
        ))

    query = select(Vendor).where(and_(*conditions))
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.order_by(Vendor.code).offset((page - 1) * limit).limit(limit)
    vendors = (await db.execute(query)).scalars().all()

    return VendorListResponse(
        data=[VendorResponse.model_validate(v) for v in vendors],
        total=total, page=page, limit=limit
    )


@router.post("/", response_model=VendorResponse)
async def create_vendor(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    vendor_in: VendorCreate,
) -> Any:
    """创建供应商，编码留空时自动生成"""
    if vendor_in.code:
        await ensure_vendor_code_unique(db, tenant_id, vendor_in.code)
        code = vendor_in.code
    else:
        code = await generate_vendor_code(db, tenant_id)

    vendor = Vendor(**vendor_in.model_dump(exclude={"code"}), code=code, tenant_id=tenant_id)
    db.add(vendor)
    await db.commit()
    await db.refresh(vendor)
    return VendorResponse.model_validate(vendor)


@router.get("/payment-schedules/upcoming", response_model=List[PaymentScheduleResponse])
async def list_upcoming_payments(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    start_date: Optional[datetime] = Query(None, description="默认今天"),
    end_date: Optional[datetime] = Query(None, description="默认 30 天后"),
) -> Any:
    """即将到期的付款计划"""
    start = start_date or datetime.utcnow()
    end = end_date or start + timedelta(days=30)
    schedules = await get_upcoming_payments(db, tenant_id, start, end)
    return [PaymentScheduleResponse.model_validate(s) for s in schedules]


@router.put("/payment-schedules/{schedule_id}", response_model=PaymentScheduleResponse)
async def update_payment_schedule(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    schedule_id: int,
    schedule_in: PaymentScheduleUpdate,
) -> Any:
    """更新付款计划"""
    schedule = await get_schedule_or_404(db, tenant_id, schedule_id)
    update_data = schedule_in.model_dump(exclude_unset=True)
    if update_data.get("amount") is not None:
        update_data["amount"] = to_money(update_data["amount"])
    for field, value in update_data.items():
        setattr(schedule, field, value)
    await db.commit()
    await db.refresh(schedule)
    return PaymentScheduleResponse.model_validate(schedule)


@router.delete("/payment-schedules/{schedule_id}", response_model=MessageResponse)
async def delete_payment_schedule(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    schedule_id: int,
) -> Any:
    """删除付款计划"""
    schedule = await get_schedule_or_404(db, tenant_id, schedule_id)
    await db.delete(schedule)
    await db.commit()
    return MessageResponse(message="删除成功")


@router.get("/{vendor_id}", response_model=VendorResponse)
async def get_vendor(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    vendor_id: int,
) -> Any:
    """获取供应商详情"""
    return VendorResponse.model_validate(await get_vendor_or_404(db, tenant_id, vendor_id))


@router.put("/{vendor_id}", response_model=VendorResponse)
async def update_vendor(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    vendor_id: int,
    vendor_in: VendorUpdate,
) -> Any:
    """更新供应商"""
    vendor = await get_vendor_or_404(db, tenant_id, vendor_id)
    update_data = vendor_in.model_dump(exclude_unset=True)
    if update_data.get("code") and update_data["code"] != vendor.code:
        await ensure_vendor_code_unique(db, tenant_id, update_data["code"], exclude_id=vendor.id)
    for field, value in update_data.items():
        setattr(vendor, field, value)
    await db.commit()
    await db.refresh(vendor)
    return VendorResponse.model_validate(vendor)


@router.delete("/{vendor_id}", response_model=MessageResponse)
async def delete_vendor(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    vendor_id: int,
) -> Any:
    """删除供应商，已有采购单的供应商不能删除"""
    vendor = await get_vendor_or_404(db, tenant_id, vendor_id)

    po_count = (await db.execute(
        select(func.count(PurchaseOrder.id)).where(PurchaseOrder.vendor_id == vendor_id)
    )).scalar() or 0
    if po_count > 0:
        raise HTTPException(
            status_code=400,
            detail=f"该供应商已有 {po_count} 个采购单，无法删除"
        )

    await db.delete(vendor)
    await db.commit()
    return MessageResponse(message="删除成功")


@router.get("/{vendor_id}/performance", response_model=VendorPerformance)
async def get_vendor_performance(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    vendor_id: int,
) -> Any:
    """供应商绩效"""
    await get_vendor_or_404(db, tenant_id, vendor_id)
    pos = (await db.execute(
        select(PurchaseOrder).where(
            PurchaseOrder.tenant_id == tenant_id,
            PurchaseOrder.vendor_id == vendor_id
        )
    )).scalars().all()
    logs = (await db.execute(
        select(VendorCommunicationLog).where(VendorCommunicationLog.vendor_id == vendor_id)
    )).scalars().all()
    return calculate_vendor_performance(vendor_id, pos, logs)


@router.get("/{vendor_id}/communications", response_model=List[CommunicationLogResponse])
async def list_communication_logs(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    vendor_id: int,
) -> Any:
    """沟通记录（按时间排序）"""
    await get_vendor_or_404(db, tenant_id, vendor_id)
    result = await db.execute(
        select(VendorCommunicationLog)
        .where(VendorCommunicationLog.vendor_id == vendor_id)
        .order_by(VendorCommunicationLog.timestamp)
    )
    return [CommunicationLogResponse.model_validate(log) for log in result.scalars().all()]


@router.post("/{vendor_id}/communications", response_model=CommunicationLogResponse)
async def add_communication_log(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    vendor_id: int,
    log_in: CommunicationLogCreate,
) -> Any:
    """新增沟通记录"""
    await get_vendor_or_404(db, tenant_id, vendor_id)
    data = log_in.model_dump()
    data["timestamp"] = data["timestamp"] or datetime.utcnow()
    log = VendorCommunicationLog(**data, vendor_id=vendor_id, tenant_id=tenant_id)
    db.add(log)
    await db.commit()
    await db.refresh(log)
    return CommunicationLogResponse.model_validate(log)


@router.get("/{vendor_id}/payment-schedules", response_model=List[PaymentScheduleResponse])
async def list_payment_schedules(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    vendor_id: int,
    status: Optional[str] = Query(None),
) -> Any:
    """供应商付款计划"""
    await get_vendor_or_404(db, tenant_id, vendor_id)
    query = select(VendorPaymentSchedule).where(VendorPaymentSchedule.vendor_id == vendor_id)
    if status:
        query = query.where(VendorPaymentSchedule.status == status)
    result = await db.execute(query.order_by(VendorPaymentSchedule.payment_date))
    return [PaymentScheduleResponse.model_validate(s) for s in result.scalars().all()]


@router.post("/{vendor_id}/payment-schedules", response_model=PaymentScheduleResponse)
async def create_payment_schedule(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    vendor_id: int,
    schedule_in: PaymentScheduleCreate,
) -> Any:
    """新增付款计划"""
    await get_vendor_or_404(db, tenant_id, vendor_id)
    if schedule_in.purchase_order_id:
        po = await get_purchase_order_or_404(db, tenant_id, schedule_in.purchase_order_id)
        if po.vendor_id != vendor_id:
            raise HTTPException(status_code=400, detail="采购单不属于该供应商")

    data = schedule_in.model_dump()
    data["amount"] = to_money(data["amount"])
    schedule = VendorPaymentSchedule(**data, vendor_id=vendor_id, tenant_id=tenant_id)
    db.add(schedule)
    await db.commit()
    await db.refresh(schedule)
    return PaymentScheduleResponse.model_validate(schedule)
