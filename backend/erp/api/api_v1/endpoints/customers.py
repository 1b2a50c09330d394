"""客户管理API"""

from datetime import datetime
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.deps import get_db, get_tenant_id
from erp.models import Customer, Sale
from erp.schemas.common import MessageResponse
from erp.schemas.customer import (
    CustomerCreate, CustomerUpdate, CustomerResponse, CustomerListResponse,
    CustomerMetrics, CustomerSegmentsResponse, CreditRecommendation
)
from erp.schemas.sale import SaleListResponse
from erp.services.customers import (
    generate_customer_code, get_customer_or_404, ensure_customer_code_unique,
    calculate_customer_metrics, calculate_credit_recommendation,
    get_customer_sales, segment_customers
)
from erp.api.api_v1.endpoints.sales import build_sale_response

router = APIRouter()


@router.get("/", response_model=CustomerListResponse)
async def list_customers(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="搜索名称/编码/联系人/邮箱"),
    status: Optional[str] = Query(None, description="状态"),
    segment: Optional[str] = Query(None, description="分层"),
) -> Any:
    """获取客户列表"""
    conditions = [Customer.tenant_id == tenant_id]
    if status:
        conditions.append(Customer.status == status)
    if segment:
        conditions.append(Customer.segment == segment)
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(
            func.lower(Customer.name).like(pattern),
            func.lower(Customer.code).like(pattern),
            func.lower(func.coalesce(Customer.contact, "")).like(pattern),
            func.lower(func.coalesce(Customer.email, "")).like(pattern),
        ))

    query = select(Customer).where(and_(*conditions))
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.order_by(Customer.code).offset((page - 1) * limit).limit(limit)
    customers = (await db.execute(query)).scalars().all()

    return CustomerListResponse(
        data=[CustomerResponse.model_validate(c) for c in customers],
        total=total, page=page, limit=limit
    )


@router.post("/", response_model=CustomerResponse)
async def create_customer(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    customer_in: CustomerCreate,
) -> Any:
    """创建客户，编码留空时自动生成"""
    if customer_in.code:
        await ensure_customer_code_unique(db, tenant_id, customer_in.code)
        code = customer_in.code
    else:
        code = await generate_customer_code(db, tenant_id)

    data = customer_in.model_dump(exclude={"code"})
    customer = Customer(**data, code=code, tenant_id=tenant_id)

    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return CustomerResponse.model_validate(customer)


@router.get("/segments", response_model=CustomerSegmentsResponse)
async def get_customer_segments(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
) -> Any:
    """按购买指标对客户分层"""
    return await segment_customers(db, tenant_id)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    customer_id: int,
) -> Any:
    """获取客户详情"""
    customer = await get_customer_or_404(db, tenant_id, customer_id)
    return CustomerResponse.model_validate(customer)


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    customer_id: int,
    customer_in: CustomerUpdate,
) -> Any:
    """更新客户"""
    customer = await get_customer_or_404(db, tenant_id, customer_id)

    update_data = customer_in.model_dump(exclude_unset=True)
    if update_data.get("code") and update_data["code"] != customer.code:
        await ensure_customer_code_unique(db, tenant_id, update_data["code"], exclude_id=customer.id)
    for field, value in update_data.items():
        setattr(customer, field, value)

    await db.commit()
    await db.refresh(customer)
    return CustomerResponse.model_validate(customer)


@router.delete("/{customer_id}", response_model=MessageResponse)
async def delete_customer(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    customer_id: int,
) -> Any:
    """删除客户，已有销售订单的客户不能删除"""
    customer = await get_customer_or_404(db, tenant_id, customer_id)

    sales_count = (await db.execute(
        select(func.count(Sale.id)).where(Sale.customer_id == customer_id)
    )).scalar() or 0
    if sales_count > 0:
        raise HTTPException(
            status_code=400,
            detail=f"该客户已有 {sales_count} 个销售订单，无法删除"
        )

    await db.delete(customer)
    await db.commit()
    return MessageResponse(message="删除成功")


@router.get("/{customer_id}/sales", response_model=SaleListResponse)
async def get_customer_sales_history(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    customer_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> Any:
    """客户销售历史（按下单时间倒序）"""
    await get_customer_or_404(db, tenant_id, customer_id)

    query = select(Sale).where(Sale.tenant_id == tenant_id, Sale.customer_id == customer_id)
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.options(selectinload(Sale.items), selectinload(Sale.customer))
    query = query.order_by(Sale.order_date.desc()).offset((page - 1) * limit).limit(limit)
    sales = (await db.execute(query)).scalars().all()

    return SaleListResponse(
        data=[build_sale_response(s) for s in sales],
        total=total, page=page, limit=limit
    )


@router.get("/{customer_id}/metrics", response_model=CustomerMetrics)
async def get_customer_metrics(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    customer_id: int,
) -> Any:
    """客户指标：累计销售额、订单数、客单价、最近下单、按时付款率"""
    await get_customer_or_404(db, tenant_id, customer_id)
    sales = await get_customer_sales(db, tenant_id, customer_id)
    return calculate_customer_metrics(sales, datetime.utcnow())


@router.get("/{customer_id}/credit-recommendation", response_model=CreditRecommendation)
async def get_credit_recommendation(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    customer_id: int,
) -> Any:
    """信用额度建议"""
    customer = await get_customer_or_404(db, tenant_id, customer_id)
    sales = await get_customer_sales(db, tenant_id, customer_id)
    metrics = calculate_customer_metrics(sales, datetime.utcnow())
    return CreditRecommendation(
        customer_id=customer.id,
        current_credit_limit=float(customer.credit_limit or 0),
        recommended_credit_limit=calculate_credit_recommendation(metrics),
        metrics=CustomerMetrics(**metrics),
    )
