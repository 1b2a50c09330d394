"""采购订单API"""

from datetime import datetime
from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.deps import get_db, get_tenant_id
from erp.models import PurchaseOrder
from erp.schemas.common import MessageResponse
from erp.schemas.sale import PaymentIn
from erp.schemas.vendor import (
    PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderResponse, PurchaseOrderListResponse,
    PurchaseOrderItemResponse, ReceiveItemsRequest
)
from erp.services.sales import apply_payment
from erp.services.vendors import (
    create_purchase_order, update_purchase_order, delete_purchase_order,
    get_purchase_order_or_404, receive_purchase_order_items
)

router = APIRouter()


def build_po_response(po: PurchaseOrder) -> PurchaseOrderResponse:
    """构建采购单响应（需已加载 items 和 vendor）"""
    return PurchaseOrderResponse(
        id=po.id,
        po_number=po.po_number,
        vendor_id=po.vendor_id,
        vendor_code=po.vendor_code,
        vendor_name=po.vendor.name if po.vendor else None,
        status=po.status,
        subtotal=float(po.subtotal or 0),
        tax_rate=float(po.tax_rate or 0),
        tax_amount=float(po.tax_amount or 0),
        discount_type=po.discount_type,
        discount_value=float(po.discount_value or 0),
        discount_amount=float(po.discount_amount or 0),
        total=float(po.total or 0),
        amount_paid=float(po.amount_paid or 0),
        payment_status=po.payment_status,
        payment_terms=po.payment_terms,
        payment_method=po.payment_method,
        payment_reference=po.payment_reference,
        payment_date=po.payment_date,
        delivery_address=po.delivery_address,
        order_date=po.order_date,
        expected_delivery_date=po.expected_delivery_date,
        actual_delivery_date=po.actual_delivery_date,
        has_quality_issues=bool(po.has_quality_issues),
        quality_notes=po.quality_notes,
        notes=po.notes,
        custom_fields=po.custom_fields or {},
        created_at=po.created_at,
        updated_at=po.updated_at,
        items=[
            PurchaseOrderItemResponse(
                id=item.id,
                product_id=item.product_id,
                product_name=item.product_name,
                product_sku=item.product_sku,
                quantity=item.quantity,
                unit_price=float(item.unit_price or 0),
                subtotal=float(item.subtotal or 0),
                received_quantity=item.received_quantity or 0,
                is_fully_received=item.is_fully_received,
            )
            for item in po.items
        ],
    )


@router.get("/", response_model=PurchaseOrderListResponse)
async def list_purchase_orders(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    vendor_id: Optional[int] = Query(None, description="供应商"),
    status: Optional[str] = Query(None, description="状态"),
    payment_status: Optional[str] = Query(None, description="付款状态"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
) -> Any:
    """获取采购订单列表"""
    conditions = [PurchaseOrder.tenant_id == tenant_id]
    if vendor_id:
        conditions.append(PurchaseOrder.vendor_id == vendor_id)
    if status:
        conditions.append(PurchaseOrder.status == status)
    if payment_status:
        conditions.append(PurchaseOrder.payment_status == payment_status)
    if start_date:
        conditions.append(PurchaseOrder.order_date >= start_date)
    if end_date:
        conditions.append(PurchaseOrder.order_date <= end_date)

    query = select(PurchaseOrder).where(and_(*conditions))
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.options(selectinload(PurchaseOrder.items), selectinload(PurchaseOrder.vendor))
    query = query.order_by(PurchaseOrder.order_date.desc()).offset((page - 1) * limit).limit(limit)
    pos = (await db.execute(query)).scalars().all()

    return PurchaseOrderListResponse(
        data=[build_po_response(po) for po in pos],
        total=total, page=page, limit=limit
    )


@router.post("/", response_model=PurchaseOrderResponse)
async def create_po(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    po_in: PurchaseOrderCreate,
) -> Any:
    """创建采购订单"""
    po = await create_purchase_order(db, tenant_id, po_in)
    await db.commit()
    po = await get_purchase_order_or_404(db, tenant_id, po.id)
    return build_po_response(po)


@router.get("/{po_id}", response_model=PurchaseOrderResponse)
async def get_po(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    po_id: int,
) -> Any:
    """获取采购订单详情"""
    return build_po_response(await get_purchase_order_or_404(db, tenant_id, po_id))


@router.put("/{po_id}", response_model=PurchaseOrderResponse)
async def update_po(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    po_id: int,
    po_in: PurchaseOrderUpdate,
) -> Any:
    """修改采购订单，重新计算金额"""
    po = await get_purchase_order_or_404(db, tenant_id, po_id)
    await update_purchase_order(db, tenant_id, po, po_in)
    await db.commit()
    return build_po_response(await get_purchase_order_or_404(db, tenant_id, po_id))


@router.delete("/{po_id}", response_model=MessageResponse)
async def delete_po(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    po_id: int,
) -> Any:
    """删除采购订单（仅草稿或已取消且未收货）"""
    po = await get_purchase_order_or_404(db, tenant_id, po_id)
    await delete_purchase_order(db, po)
    await db.commit()
    return MessageResponse(message="删除成功")


@router.post("/{po_id}/receive", response_model=PurchaseOrderResponse)
async def receive_po_items(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    po_id: int,
    receive_in: ReceiveItemsRequest,
) -> Any:
    """采购收货，指定库位的明细同时入库"""
    po = await get_purchase_order_or_404(db, tenant_id, po_id)
    await receive_purchase_order_items(db, tenant_id, po, receive_in)
    await db.commit()
    return build_po_response(await get_purchase_order_or_404(db, tenant_id, po_id))


@router.post("/{po_id}/payments", response_model=PurchaseOrderResponse)
async def record_po_payment(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    po_id: int,
    payment_in: PaymentIn,
) -> Any:
    """登记付款（累加已付金额）"""
    po = await get_purchase_order_or_404(db, tenant_id, po_id)
    apply_payment(
        po, payment_in.amount,
        payment_in.payment_method, payment_in.payment_reference, payment_in.payment_date)
    await db.commit()
    return build_po_response(await get_purchase_order_or_404(db, tenant_id, po_id))
