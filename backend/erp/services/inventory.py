"""
库存服务

所有库存变动都经过这里：
- 库位库存 InventoryRecord 与商品总库存 Product.quantity 同步变动
- 每次变动写一条 InventoryTransaction 流水
- 函数只 flush 不 commit，由调用方在同一事务中提交，保证多步操作原子性
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from fastapi import HTTPException
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.config import settings
from erp.models import Product, Location, InventoryRecord, InventoryTransaction

logger = logging.getLogger(__name__)


async def get_product_or_404(db: AsyncSession, tenant_id: int, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if not product or product.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail=f"商品不存在: {product_id}")
    return product


async def get_location_or_404(db: AsyncSession, tenant_id: int, location_id: int) -> Location:
    location = await db.get(Location, location_id)
    if not location or location.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail=f"库位不存在: {location_id}")
    return location


async def generate_sku(db: AsyncSession, tenant_id: int, vendor_code: Optional[str] = None) -> str:
    """生成SKU：[供应商编码-]PROD001

    序号取本租户已有 PROD 序号的最大值 + 1，与供应商无关
    """
    result = await db.execute(
        select(Product.sku).where(
            Product.tenant_id == tenant_id,
            Product.sku.like("%PROD%")
        )
    )
    max_num = 0
    for (sku,) in result.all():
        tail = sku.rsplit("PROD", 1)[-1]
        if tail.isdigit():
            max_num = max(max_num, int(tail))

    code = f"PROD{max_num + 1:03d}"
    return f"{vendor_code}-{code}" if vendor_code else code


def build_product_filters(
    tenant_id: int,
    search: Optional[str] = None,
    category: Optional[str] = None,
    strain_type: Optional[str] = None,
    vendor_id: Optional[int] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> List[Any]:
    """构建商品查询条件

    价格为空的商品按 0 参与价格区间比较；关键字不区分大小写匹配品名、SKU、描述
    """
    conditions = [Product.tenant_id == tenant_id]
    if category:
        conditions.append(Product.category == category)
    if strain_type:
        conditions.append(Product.strain_type == strain_type)
    if vendor_id:
        conditions.append(Product.vendor_id == vendor_id)

    price = func.coalesce(Product.price, 0)
    if min_price is not None:
        conditions.append(price >= min_price)
    if max_price is not None:
        conditions.append(price <= max_price)

    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(
            func.lower(Product.name).like(pattern),
            func.lower(Product.sku).like(pattern),
            func.lower(func.coalesce(Product.description, "")).like(pattern),
        ))
    return conditions


async def get_inventory_record(
    db: AsyncSession,
    product_id: int,
    location_id: int,
) -> Optional[InventoryRecord]:
    result = await db.execute(
        select(InventoryRecord).where(and_(
            InventoryRecord.product_id == product_id,
            InventoryRecord.location_id == location_id
        ))
    )
    return result.scalar_one_or_none()


def _log_transaction(
    db: AsyncSession,
    tenant_id: int,
    product_id: int,
    location_id: int,
    transaction_type: str,
    quantity_change: int,
    quantity_before: int,
    reference: Optional[str],
    reason: Optional[str],
) -> InventoryTransaction:
    txn = InventoryTransaction(
        tenant_id=tenant_id,
        product_id=product_id,
        location_id=location_id,
        transaction_type=transaction_type,
        quantity_change=quantity_change,
        quantity_before=quantity_before,
        quantity_after=quantity_before + quantity_change,
        reference=reference,
        reason=reason,
        occurred_at=datetime.utcnow())
    db.add(txn)
    return txn


async def add_inventory(
    db: AsyncSession,
    tenant_id: int,
    product_id: int,
    location_id: int,
    quantity: int,
    batch_number: Optional[str] = None,
    transaction_type: str = "received",
    reference: Optional[str] = None,
    reason: Optional[str] = None) -> InventoryRecord:
    """入库

    库位记录不存在时创建；批号仅在传入时覆盖
    """
    product = await get_product_or_404(db, tenant_id, product_id)
    await get_location_or_404(db, tenant_id, location_id)

    if quantity is None or quantity <= 0:
        raise HTTPException(status_code=400, detail="数量必须大于0")

    record = await get_inventory_record(db, product_id, location_id)
    if not record:
        record = InventoryRecord(
            tenant_id=tenant_id,
            product_id=product_id,
            location_id=location_id,
            quantity=0,
            batch_number=batch_number)
        db.add(record)
        await db.flush()

    old_quantity = record.quantity
    record.quantity = old_quantity + quantity
    if batch_number:
        record.batch_number = batch_number

    product.quantity = (product.quantity or 0) + quantity

    _log_transaction(
        db, tenant_id, product_id, location_id, transaction_type,
        quantity, old_quantity, reference, reason or "入库")
    await db.flush()

    logger.info(f"📦 入库: 商品 {product.sku} @ 库位 {location_id} +{quantity} ({transaction_type})")
    return record


async def remove_inventory(
    db: AsyncSession,
    tenant_id: int,
    product_id: int,
    location_id: int,
    quantity: int,
    transaction_type: str = "adjustment",
    reference: Optional[str] = None,
    reason: Optional[str] = None) -> Optional[InventoryRecord]:
    """出库

    库位数量不足时拒绝；库位数量归零时删除记录并返回 None
    """
    product = await get_product_or_404(db, tenant_id, product_id)
    await get_location_or_404(db, tenant_id, location_id)

    if quantity is None or quantity <= 0:
        raise HTTPException(status_code=400, detail="数量必须大于0")

    record = await get_inventory_record(db, product_id, location_id)
    if not record:
        raise HTTPException(
            status_code=400,
            detail=f"商品 {product.sku} 在该库位没有库存记录"
        )
    if record.quantity < quantity:
        raise HTTPException(
            status_code=400,
            detail=f"库存不足：请求 {quantity}，可用 {record.quantity}"
        )

    old_quantity = record.quantity
    record.quantity = old_quantity - quantity

    # 总库存不小于 0
    product.quantity = max(0, (product.quantity or 0) - quantity)

    _log_transaction(
        db, tenant_id, product_id, location_id, transaction_type,
        -quantity, old_quantity, reference, reason or "出库")

    if record.quantity == 0:
        await db.delete(record)
        record = None
    await db.flush()

    logger.info(f"📤 出库: 商品 {product.sku} @ 库位 {location_id} -{quantity} ({transaction_type})")
    return record


async def transfer_inventory(
    db: AsyncSession,
    tenant_id: int,
    product_id: int,
    from_location_id: int,
    to_location_id: int,
    quantity: int,
    reason: Optional[str] = None) -> Dict[str, Any]:
    """库位间调拨

    调出与调入在同一事务内完成，调出失败则不会调入
    """
    if from_location_id == to_location_id:
        raise HTTPException(status_code=400, detail="调出库位与调入库位不能相同")

    await remove_inventory(
        db, tenant_id, product_id, from_location_id, quantity,
        transaction_type="transfer_out",
        reason=reason or f"调拨至库位 {to_location_id}")

    await add_inventory(
        db, tenant_id, product_id, to_location_id, quantity,
        transaction_type="transfer_in",
        reason=reason or f"从库位 {from_location_id} 调入")

    return {
        "success": True,
        "product_id": product_id,
        "from_location_id": from_location_id,
        "to_location_id": to_location_id,
        "quantity": quantity,
    }


async def get_low_inventory_products(
    db: AsyncSession,
    tenant_id: int,
    threshold: Optional[int] = None) -> List[Product]:
    """总库存低于阈值的商品"""
    if threshold is None:
        threshold = settings.LOW_INVENTORY_THRESHOLD
    result = await db.execute(
        select(Product).where(and_(
            Product.tenant_id == tenant_id,
            Product.quantity < threshold
        )).order_by(Product.quantity, Product.name)
    )
    return list(result.scalars().all())


async def count_low_inventory_products(
    db: AsyncSession,
    tenant_id: int,
    threshold: Optional[int] = None) -> int:
    if threshold is None:
        threshold = settings.LOW_INVENTORY_THRESHOLD
    result = await db.execute(
        select(func.count(Product.id)).where(and_(
            Product.tenant_id == tenant_id,
            Product.quantity < threshold
        ))
    )
    return result.scalar() or 0


async def has_inventory_records(
    db: AsyncSession,
    product_id: Optional[int] = None,
    location_id: Optional[int] = None) -> bool:
    """商品或库位是否仍有库存记录（用于删除前校验）"""
    query = select(func.count(InventoryRecord.id))
    if product_id is not None:
        query = query.where(InventoryRecord.product_id == product_id)
    if location_id is not None:
        query = query.where(InventoryRecord.location_id == location_id)
    result = await db.execute(query)
    return (result.scalar() or 0) > 0
