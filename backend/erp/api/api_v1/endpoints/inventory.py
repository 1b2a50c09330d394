"""库存管理API - 入库、出库、调拨与流水查询"""

from datetime import datetime
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.deps import get_db, get_tenant_id
from erp.models import InventoryRecord, InventoryTransaction
from erp.schemas.inventory import (
    InventoryChange, InventoryTransfer, TransferResult, InventoryChangeResult,
    InventoryRecordResponse, InventoryTransactionResponse, InventoryTransactionListResponse
)
from erp.services.inventory import (
    add_inventory, remove_inventory, transfer_inventory,
    get_product_or_404, get_location_or_404
)

router = APIRouter()


def build_record_response(record: InventoryRecord) -> InventoryRecordResponse:
    """库位库存响应（需已加载 product 和 location）"""
    return InventoryRecordResponse(
        id=record.id,
        product_id=record.product_id,
        location_id=record.location_id,
        quantity=record.quantity,
        batch_number=record.batch_number,
        product_name=record.product.name if record.product else None,
        product_sku=record.product.sku if record.product else None,
        location_name=record.location.name if record.location else None,
        updated_at=record.updated_at,
    )


async def _list_records(db: AsyncSession, *conditions) -> List[InventoryRecordResponse]:
    result = await db.execute(
        select(InventoryRecord)
        .options(selectinload(InventoryRecord.product), selectinload(InventoryRecord.location))
        .where(and_(*conditions))
        .order_by(InventoryRecord.product_id, InventoryRecord.location_id)
    )
    return [build_record_response(r) for r in result.scalars().all()]


@router.post("/add", response_model=InventoryChangeResult)
async def add_stock(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    change_in: InventoryChange,
) -> Any:
    """入库"""
    record = await add_inventory(
        db, tenant_id, change_in.product_id, change_in.location_id, change_in.quantity,
        batch_number=change_in.batch_number,
        reference=change_in.reference,
        reason=change_in.reason)
    product = await get_product_or_404(db, tenant_id, change_in.product_id)
    await db.commit()
    return InventoryChangeResult(
        product_id=product.id,
        location_id=change_in.location_id,
        location_quantity=record.quantity,
        product_quantity=product.quantity,
        batch_number=record.batch_number,
    )


@router.post("/remove", response_model=InventoryChangeResult)
async def remove_stock(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    change_in: InventoryChange,
) -> Any:
    """出库（库存调整）"""
    record = await remove_inventory(
        db, tenant_id, change_in.product_id, change_in.location_id, change_in.quantity,
        reference=change_in.reference,
        reason=change_in.reason)
    product = await get_product_or_404(db, tenant_id, change_in.product_id)
    await db.commit()
    return InventoryChangeResult(
        product_id=product.id,
        location_id=change_in.location_id,
        location_quantity=record.quantity if record else 0,
        product_quantity=product.quantity,
        batch_number=record.batch_number if record else None,
    )


@router.post("/transfer", response_model=TransferResult)
async def transfer_stock(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    transfer_in: InventoryTransfer,
) -> Any:
    """库位间调拨，调出与调入在同一事务中提交"""
    result = await transfer_inventory(
        db, tenant_id, transfer_in.product_id,
        transfer_in.from_location_id, transfer_in.to_location_id,
        transfer_in.quantity, transfer_in.reason)
    await db.commit()
    return result


@router.get("/", response_model=List[InventoryRecordResponse])
async def list_inventory(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
) -> Any:
    """全部库位库存"""
    return await _list_records(db, InventoryRecord.tenant_id == tenant_id)


@router.get("/products/{product_id}", response_model=List[InventoryRecordResponse])
async def get_product_inventory(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    product_id: int,
) -> Any:
    """商品在各库位的库存"""
    await get_product_or_404(db, tenant_id, product_id)
    return await _list_records(
        db, InventoryRecord.tenant_id == tenant_id, InventoryRecord.product_id == product_id)


@router.get("/locations/{location_id}", response_model=List[InventoryRecordResponse])
async def get_location_inventory(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    location_id: int,
) -> Any:
    """库位中的商品库存"""
    await get_location_or_404(db, tenant_id, location_id)
    return await _list_records(
        db, InventoryRecord.tenant_id == tenant_id, InventoryRecord.location_id == location_id)


@router.get("/transactions", response_model=InventoryTransactionListResponse)
async def list_transactions(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    product_id: Optional[int] = Query(None),
    location_id: Optional[int] = Query(None),
    transaction_type: Optional[str] = Query(None, description="流水类型"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
) -> Any:
    """库存流水"""
    conditions = [InventoryTransaction.tenant_id == tenant_id]
    if product_id:
        conditions.append(InventoryTransaction.product_id == product_id)
    if location_id:
        conditions.append(InventoryTransaction.location_id == location_id)
    if transaction_type:
        conditions.append(InventoryTransaction.transaction_type == transaction_type)
    if start_date:
        conditions.append(InventoryTransaction.occurred_at >= start_date)
    if end_date:
        conditions.append(InventoryTransaction.occurred_at <= end_date)

    query = select(InventoryTransaction).where(and_(*conditions))
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.options(
        selectinload(InventoryTransaction.product), selectinload(InventoryTransaction.location)
    ).order_by(InventoryTransaction.occurred_at.desc(), InventoryTransaction.id.desc())
    query = query.offset((page - 1) * limit).limit(limit)
    txns = (await db.execute(query)).scalars().all()

    data = []
    for t in txns:
        data.append(InventoryTransactionResponse(
            id=t.id,
            product_id=t.product_id,
            location_id=t.location_id,
            transaction_type=t.transaction_type,
            type_display=t.type_display,
            quantity_change=t.quantity_change,
            quantity_before=t.quantity_before,
            quantity_after=t.quantity_after,
            reference=t.reference,
            reason=t.reason,
            occurred_at=t.occurred_at,
            product_name=t.product.name if t.product else None,
            location_name=t.location.name if t.location else None,
        ))

    return InventoryTransactionListResponse(data=data, total=total, page=page, limit=limit)
