"""
供应商服务 - 采购订单、收货入库、供应商绩效、付款计划
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any, Iterable

from fastapi import HTTPException
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.models import Vendor, PurchaseOrder, PurchaseOrderItem, VendorPaymentSchedule
from erp.schemas.vendor import PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderItemIn, ReceiveItemsRequest
from erp.services.inventory import add_inventory, get_product_or_404
from erp.services.sales import calculate_order_totals, refresh_payment_status, to_money

logger = logging.getLogger(__name__)

# 允许删除的采购单状态
DELETABLE_PO_STATUSES = ("draft", "cancelled")


async def generate_vendor_code(db: AsyncSession, tenant_id: int) -> str:
    """生成供应商编码：V0001"""
    result = await db.execute(
        select(Vendor.code).where(
            Vendor.tenant_id == tenant_id,
            Vendor.code.like("V%")
        )
    )
    max_num = 0
    for (code,) in result.all():
        tail = code[1:]
        if tail.isdigit():
            max_num = max(max_num, int(tail))
    return f"V{max_num + 1:04d}"


async def generate_po_number(db: AsyncSession, tenant_id: int) -> str:
    """生成采购单号：PO00001"""
    result = await db.execute(
        select(func.max(PurchaseOrder.po_number)).where(
            PurchaseOrder.tenant_id == tenant_id,
            PurchaseOrder.po_number.like("PO%")
        )
    )
    max_no = result.scalar()
    num = 1
    if max_no and max_no[2:].isdigit():
        num = int(max_no[2:]) + 1
    return f"PO{num:05d}"


async def get_vendor_or_404(db: AsyncSession, tenant_id: int, vendor_id: int) -> Vendor:
    vendor = await db.get(Vendor, vendor_id)
    if not vendor or vendor.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail=f"供应商不存在: {vendor_id}")
    return vendor


async def get_purchase_order_or_404(db: AsyncSession, tenant_id: int, po_id: int) -> PurchaseOrder:
    result = await db.execute(
        select(PurchaseOrder)
        .options(selectinload(PurchaseOrder.items), selectinload(PurchaseOrder.vendor))
        .where(PurchaseOrder.id == po_id, PurchaseOrder.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )
    po = result.scalar_one_or_none()
    if not po:
        raise HTTPException(status_code=404, detail=f"采购订单不存在: {po_id}")
    return po


async def _build_po_item(db: AsyncSession, tenant_id: int, data: PurchaseOrderItemIn) -> PurchaseOrderItem:
    product = await get_product_or_404(db, tenant_id, data.product_id)
    unit_price = to_money(data.unit_price if data.unit_price is not None else product.cost_price)
    return PurchaseOrderItem(
        product_id=product.id,
        product_name=product.name,
        product_sku=product.sku,
        quantity=data.quantity,
        unit_price=unit_price,
        subtotal=to_money(Decimal(data.quantity) * unit_price),
        received_quantity=0)


def _apply_po_totals(po: PurchaseOrder) -> None:
    totals = calculate_order_totals(po.items, po.tax_rate, po.discount_type, po.discount_value)
    po.subtotal = totals["subtotal"]
    po.tax_amount = totals["tax_amount"]
    po.discount_amount = totals["discount_amount"]
    po.total = totals["total"]


def _refresh_receipt_status(po: PurchaseOrder) -> None:
    """按明细收货情况重新判定采购单状态

    全部收齐为 received，部分收货为 partial；未收齐时清空实际到货日期。
    已取消、已完成的采购单不变。
    """
    if po.status in ("cancelled", "completed"):
        return
    if po.is_fully_received:
        po.status = "received"
        if po.actual_delivery_date is None:
            po.actual_delivery_date = datetime.utcnow()
        return
    po.actual_delivery_date = None
    if any((item.received_quantity or 0) > 0 for item in po.items):
        po.status = "partial"
    elif po.status in ("received", "partial"):
        po.status = "submitted"


async def create_purchase_order(db: AsyncSession, tenant_id: int, data: PurchaseOrderCreate) -> PurchaseOrder:
    """创建采购订单"""
    vendor = await get_vendor_or_404(db, tenant_id, data.vendor_id)

    po_number = data.po_number or await generate_po_number(db, tenant_id)
    if data.po_number:
        exists = await db.execute(
            select(func.count(PurchaseOrder.id)).where(
                PurchaseOrder.tenant_id == tenant_id,
                PurchaseOrder.po_number == po_number
            )
        )
        if (exists.scalar() or 0) > 0:
            raise HTTPException(status_code=409, detail=f"采购单号已存在: {po_number}")

    po = PurchaseOrder(
        tenant_id=tenant_id,
        po_number=po_number,
        vendor=vendor,
        vendor_code=vendor.code,
        status=data.status,
        tax_rate=to_money(data.tax_rate),
        discount_type=data.discount_type,
        discount_value=to_money(data.discount_value),
        amount_paid=Decimal("0.00"),
        payment_status="unpaid",
        payment_terms=data.payment_terms or vendor.payment_terms,
        delivery_address=data.delivery_address.model_dump() if data.delivery_address else None,
        order_date=data.order_date or datetime.utcnow(),
        expected_delivery_date=data.expected_delivery_date,
        notes=data.notes,
        custom_fields=data.custom_fields)
    po.items = [await _build_po_item(db, tenant_id, item) for item in data.items]
    _apply_po_totals(po)

    db.add(po)
    await db.flush()
    logger.info(f"📝 创建采购订单 {po_number}: 供应商 {vendor.code}, 合计 {po.total}")
    return po


async def update_purchase_order(
    db: AsyncSession,
    tenant_id: int,
    po: PurchaseOrder,
    data: PurchaseOrderUpdate) -> PurchaseOrder:
    """修改采购订单，传入 items 时替换明细（已收货的明细保留收货数量）"""
    update_data = data.model_dump(exclude_unset=True, exclude={"items"})
    if "delivery_address" in update_data and data.delivery_address is not None:
        update_data["delivery_address"] = data.delivery_address.model_dump()
    for field in ("tax_rate", "discount_value"):
        if update_data.get(field) is not None:
            update_data[field] = to_money(update_data[field])
    for field, value in update_data.items():
        setattr(po, field, value)

    if data.items is not None:
        if not data.items:
            raise HTTPException(status_code=400, detail="采购单至少需要一条明细")
        existing = {item.id: item for item in po.items}
        unknown = [i.id for i in data.items if i.id is not None and i.id not in existing]
        if unknown:
            raise HTTPException(status_code=400, detail=f"采购明细不存在: {unknown}")

        kept_ids = set()
        for item_in in data.items:
            if item_in.id is None:
                po.items.append(await _build_po_item(db, tenant_id, item_in))
                continue
            item = existing[item_in.id]
            kept_ids.add(item.id)
            if item.product_id != item_in.product_id:
                if item.received_quantity:
                    raise HTTPException(status_code=400, detail="已收货的明细不能更换商品")
                product = await get_product_or_404(db, tenant_id, item_in.product_id)
                item.product_id = product.id
                item.product_name = product.name
                item.product_sku = product.sku
            item.quantity = item_in.quantity
            if item_in.unit_price is not None:
                item.unit_price = to_money(item_in.unit_price)
            item.subtotal = to_money(Decimal(item.quantity) * to_money(item.unit_price))

        for item_id, item in existing.items():
            if item_id not in kept_ids:
                if item.received_quantity:
                    raise HTTPException(status_code=400, detail="已收货的明细不能删除")
                po.items.remove(item)
        _refresh_receipt_status(po)

    _apply_po_totals(po)
    refresh_payment_status(po)
    await db.flush()
    logger.info(f"✏️ 修改采购订单 {po.po_number}: 合计 {po.total}")
    return po


async def delete_purchase_order(db: AsyncSession, po: PurchaseOrder) -> None:
    """删除采购订单，只允许草稿或已取消且未收货的订单"""
    if po.status not in DELETABLE_PO_STATUSES:
        raise HTTPException(status_code=400, detail=f"只能删除草稿或已取消的采购单，当前状态: {po.status}")
    if any(item.received_quantity for item in po.items):
        raise HTTPException(status_code=400, detail="采购单已有收货记录，不能删除")
    await db.delete(po)
    await db.flush()
    logger.info(f"🗑️ 删除采购订单 {po.po_number}")


async def receive_purchase_order_items(
    db: AsyncSession,
    tenant_id: int,
    po: PurchaseOrder,
    data: ReceiveItemsRequest) -> PurchaseOrder:
    """采购收货

    累加收货数量；全部收齐 → received 并记录实际到货日期，部分收货 → partial；
    指定库位的明细按收货数量入库（received）
    """
    if po.status == "cancelled":
        raise HTTPException(status_code=400, detail="已取消的采购单不能收货")

    items_by_id = {item.id: item for item in po.items}
    unknown = [r.item_id for r in data.items if r.item_id not in items_by_id]
    if unknown:
        raise HTTPException(status_code=400, detail=f"采购明细不存在: {unknown}")

    for received in data.items:
        item = items_by_id[received.item_id]
        item.received_quantity = (item.received_quantity or 0) + received.quantity
        if received.location_id:
            await add_inventory(
                db, tenant_id, item.product_id, received.location_id, received.quantity,
                batch_number=received.batch_number,
                transaction_type="received",
                reference=po.po_number,
                reason=f"采购单 {po.po_number} 收货")

    _refresh_receipt_status(po)

    if data.has_quality_issues is not None:
        po.has_quality_issues = data.has_quality_issues
    if data.quality_notes:
        po.quality_notes = data.quality_notes

    await db.flush()
    logger.info(f"📥 采购单 {po.po_number} 收货 {len(data.items)} 条明细，状态 {po.status}")
    return po


def calculate_vendor_performance(
    vendor_id: int,
    purchase_orders: Iterable[Any],
    communication_logs: Iterable[Any]) -> Dict[str, Any]:
    """供应商绩效

    - 准时交货率：实际到货日期 ≤ 预计到货日期的订单占比
    - 履约率：状态为 received / completed 的订单占比
    - 质量问题率：有质量问题的订单占比
    - 平均响应时长：我方发出后紧接着收到供应商回复的间隔（小时）
    """
    purchase_orders = list(purchase_orders)
    total_orders = len(purchase_orders)
    total_spent = sum(float(po.total or 0) for po in purchase_orders)

    def rate(count: int) -> float:
        return round(count / total_orders * 100, 2) if total_orders else 0.0

    on_time = sum(
        1 for po in purchase_orders
        if po.expected_delivery_date and po.actual_delivery_date
        and po.actual_delivery_date <= po.expected_delivery_date
    )
    fulfilled = sum(1 for po in purchase_orders if po.status in ("received", "completed"))
    quality_issues = sum(1 for po in purchase_orders if po.has_quality_issues)

    logs = sorted(communication_logs, key=lambda log: log.timestamp)
    response_seconds = [
        (nxt.timestamp - cur.timestamp).total_seconds()
        for cur, nxt in zip(logs, logs[1:])
        if cur.direction == "outgoing" and nxt.direction == "incoming"
    ]
    average_response_hours = None
    if response_seconds:
        average_response_hours = round(sum(response_seconds) / len(response_seconds) / 3600, 2)

    return {
        "vendor_id": vendor_id,
        "total_orders": total_orders,
        "total_spent": round(total_spent, 2),
        "on_time_delivery_rate": rate(on_time),
        "order_fulfillment_rate": rate(fulfilled),
        "quality_issue_rate": rate(quality_issues),
        "average_response_time_hours": average_response_hours,
        "last_order_date": max((po.order_date for po in purchase_orders if po.order_date), default=None),
    }


async def get_upcoming_payments(
    db: AsyncSession,
    tenant_id: int,
    start_date: datetime,
    end_date: datetime) -> List[VendorPaymentSchedule]:
    """指定时间范围内待付款的计划"""
    result = await db.execute(
        select(VendorPaymentSchedule).where(and_(
            VendorPaymentSchedule.tenant_id == tenant_id,
            VendorPaymentSchedule.status == "scheduled",
            VendorPaymentSchedule.payment_date >= start_date,
            VendorPaymentSchedule.payment_date <= end_date
        )).order_by(VendorPaymentSchedule.payment_date)
    )
    return list(result.scalars().all())


async def mark_overdue_payment_schedules(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """将已过付款日仍为 scheduled 的计划标记为 overdue，返回标记数量"""
    now = now or datetime.utcnow()
    result = await db.execute(
        select(VendorPaymentSchedule).where(and_(
            VendorPaymentSchedule.status == "scheduled",
            VendorPaymentSchedule.payment_date < now
        ))
    )
    schedules = result.scalars().all()
    for schedule in schedules:
        schedule.status = "overdue"
    return len(schedules)
