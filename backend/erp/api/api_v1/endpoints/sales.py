"""销售订单API"""

from datetime import datetime
from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.deps import get_db, get_tenant_id
from erp.models import Sale, Customer
from erp.schemas.common import MessageResponse
from erp.schemas.sale import (
    SaleCreate, SaleUpdate, PaymentIn, SaleResponse, SaleListResponse, SaleItemResponse
)
from erp.services.sales import (
    create_sale, update_sale, delete_sale, get_sale_or_404, apply_payment,
    calculate_sales_metrics, calculate_commission, load_sales
)

router = APIRouter()


def build_sale_response(sale: Sale) -> SaleResponse:
    """构建订单响应（需已加载 items 和 customer）"""
    return SaleResponse(
        id=sale.id,
        order_number=sale.order_number,
        customer_id=sale.customer_id,
        customer_code=sale.customer_code,
        customer_name=sale.customer.name if sale.customer else None,
        status=sale.status,
        subtotal=float(sale.subtotal or 0),
        tax_rate=float(sale.tax_rate or 0),
        tax_amount=float(sale.tax_amount or 0),
        discount_type=sale.discount_type,
        discount_value=float(sale.discount_value or 0),
        discount_amount=float(sale.discount_amount or 0),
        total=float(sale.total or 0),
        amount_paid=float(sale.amount_paid or 0),
        balance_due=float(sale.balance_due),
        payment_status=sale.payment_status,
        payment_method=sale.payment_method,
        payment_reference=sale.payment_reference,
        payment_date=sale.payment_date,
        due_date=sale.due_date,
        shipping_address=sale.shipping_address,
        shipping_method=sale.shipping_method,
        tracking_number=sale.tracking_number,
        sales_rep_id=sale.sales_rep_id,
        commission_rate=float(sale.commission_rate or 0),
        commission_amount=float(sale.commission_amount or 0),
        notes=sale.notes,
        custom_fields=sale.custom_fields or {},
        order_date=sale.order_date,
        created_at=sale.created_at,
        updated_at=sale.updated_at,
        items=[SaleItemResponse.model_validate(item) for item in sale.items],
    )


@router.get("/", response_model=SaleListResponse)
async def list_sales(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    customer_id: Optional[int] = Query(None, description="客户"),
    status: Optional[str] = Query(None, description="订单状态"),
    payment_status: Optional[str] = Query(None, description="收款状态"),
    sales_rep_id: Optional[int] = Query(None, description="销售代表"),
    start_date: Optional[datetime] = Query(None, description="开始日期"),
    end_date: Optional[datetime] = Query(None, description="结束日期"),
) -> Any:
    """获取销售订单列表"""
    conditions = [Sale.tenant_id == tenant_id]
    if customer_id:
        conditions.append(Sale.customer_id == customer_id)
    if status:
        conditions.append(Sale.status == status)
    if payment_status:
        conditions.append(Sale.payment_status == payment_status)
    if sales_rep_id:
        conditions.append(Sale.sales_rep_id == sales_rep_id)
    if start_date:
        conditions.append(Sale.order_date >= start_date)
    if end_date:
        conditions.append(Sale.order_date <= end_date)

    query = select(Sale).where(and_(*conditions))
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.options(selectinload(Sale.items), selectinload(Sale.customer))
    query = query.order_by(Sale.order_date.desc()).offset((page - 1) * limit).limit(limit)
    sales = (await db.execute(query)).scalars().all()

    return SaleListResponse(
        data=[build_sale_response(s) for s in sales],
        total=total, page=page, limit=limit
    )


@router.post("/", response_model=SaleResponse)
async def create_sale_order(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    sale_in: SaleCreate,
) -> Any:
    """创建销售订单，有库位的明细同时出库"""
    sale = await create_sale(db, tenant_id, sale_in)
    await db.commit()
    sale = await get_sale_or_404(db, tenant_id, sale.id)
    return build_sale_response(sale)


@router.get("/metrics")
async def get_sales_metrics(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
) -> Any:
    """销售指标：订单数、销售额、客单价、状态分布、畅销商品与主要客户"""
    sales = await load_sales(db, tenant_id, start_date, end_date)
    customers = (await db.execute(
        select(Customer).where(Customer.tenant_id == tenant_id)
    )).scalars().all()
    metrics = calculate_sales_metrics(sales, {c.id: c for c in customers})
    metrics["time_range"] = {"start_date": start_date, "end_date": end_date}
    return metrics


@router.get("/commission/{sales_rep_id}")
async def get_sales_rep_commission(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    sales_rep_id: int,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
) -> Any:
    """销售代表提成统计"""
    sales = await load_sales(db, tenant_id, start_date, end_date, sales_rep_id=sales_rep_id)
    result = calculate_commission(sales_rep_id, sales)
    result["time_range"] = {"start_date": start_date, "end_date": end_date}
    return result


@router.get("/{sale_id}", response_model=SaleResponse)
async def get_sale(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    sale_id: int,
) -> Any:
    """获取销售订单详情"""
    sale = await get_sale_or_404(db, tenant_id, sale_id)
    return build_sale_response(sale)


@router.put("/{sale_id}", response_model=SaleResponse)
async def update_sale_order(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    sale_id: int,
    sale_in: SaleUpdate,
) -> Any:
    """修改销售订单，明细变化时同步调整库存"""
    sale = await get_sale_or_404(db, tenant_id, sale_id)
    await update_sale(db, tenant_id, sale, sale_in)
    await db.commit()
    sale = await get_sale_or_404(db, tenant_id, sale_id)
    return build_sale_response(sale)


@router.delete("/{sale_id}", response_model=MessageResponse)
async def delete_sale_order(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    sale_id: int,
) -> Any:
    """删除销售订单，已出库数量退回库存"""
    sale = await get_sale_or_404(db, tenant_id, sale_id)
    await delete_sale(db, tenant_id, sale)
    await db.commit()
    return MessageResponse(message="删除成功")


@router.post("/{sale_id}/payments", response_model=SaleResponse)
async def record_sale_payment(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    sale_id: int,
    payment_in: PaymentIn,
) -> Any:
    """登记收款（累加已收金额）"""
    sale = await get_sale_or_404(db, tenant_id, sale_id)
    apply_payment(
        sale, payment_in.amount,
        payment_in.payment_method, payment_in.payment_reference, payment_in.payment_date)
    await db.commit()
    sale = await get_sale_or_404(db, tenant_id, sale_id)
    return build_sale_response(sale)
