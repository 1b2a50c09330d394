"""
销售服务

- 订单金额计算（采购单共用）
- 创建/修改/删除订单时同步扣减或退回库存，全部在调用方的同一事务中完成
- 收款登记、销售指标、提成统计
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any, Iterable, Tuple

from fastapi import HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.config import settings
from erp.models import Sale, SaleItem
from erp.schemas.sale import SaleCreate, SaleUpdate, SaleItemIn
from erp.services.customers import get_customer_or_404
from erp.services.inventory import add_inventory, remove_inventory, get_product_or_404

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """转换为两位小数金额"""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def calculate_order_totals(
    items: Iterable[Any],
    tax_rate: Any = 0,
    discount_type: Optional[str] = None,
    discount_value: Any = 0) -> Dict[str, Decimal]:
    """计算订单金额

    items 为带 quantity、unit_price 的对象或字典
    - 小计 = Σ 数量 × 单价
    - 税额 = 小计 × 税率 / 100
    - 折扣 = 小计 × 折扣值 / 100（percentage）或 折扣值（fixed）
    - 合计 = 小计 + 税额 - 折扣
    """
    subtotal = Decimal("0")
    for item in items:
        subtotal += Decimal(str(_field(item, "quantity") or 0)) * Decimal(str(_field(item, "unit_price") or 0))

    tax_amount = subtotal * Decimal(str(tax_rate or 0)) / Decimal("100")

    discount_amount = Decimal("0")
    if discount_type == "percentage":
        discount_amount = subtotal * Decimal(str(discount_value or 0)) / Decimal("100")
    elif discount_type == "fixed":
        discount_amount = Decimal(str(discount_value or 0))

    total = subtotal + tax_amount - discount_amount
    return {
        "subtotal": to_money(subtotal),
        "tax_amount": to_money(tax_amount),
        "discount_amount": to_money(discount_amount),
        "total": to_money(total),
    }


def refresh_payment_status(order: Any) -> None:
    """按已付金额与合计重新判定付款状态：已付 ≥ 合计为 paid，> 0 为 partial"""
    amount_paid = to_money(order.amount_paid)
    if amount_paid > 0 and amount_paid >= to_money(order.total):
        order.payment_status = "paid"
    elif amount_paid > 0:
        order.payment_status = "partial"
    else:
        order.payment_status = "unpaid"


def apply_payment(
    order: Any,
    amount: Any,
    payment_method: Optional[str] = None,
    payment_reference: Optional[str] = None,
    payment_date: Optional[datetime] = None) -> Any:
    """登记一笔付款（销售单和采购单通用），已付金额累加"""
    amount = to_money(amount)
    if amount <= 0:
        raise HTTPException(status_code=400, detail="付款金额必须大于0")

    order.amount_paid = to_money(order.amount_paid) + amount
    refresh_payment_status(order)

    if payment_method:
        order.payment_method = payment_method
    if payment_reference:
        order.payment_reference = payment_reference
    order.payment_date = payment_date or datetime.utcnow()
    return order


def _commission(total: Decimal, rate: Any) -> Decimal:
    return to_money(total * Decimal(str(rate or 0)) / Decimal("100"))


async def generate_order_number(db: AsyncSession, tenant_id: int) -> str:
    """生成订单号：ORD00001"""
    result = await db.execute(
        select(func.max(Sale.order_number)).where(
            Sale.tenant_id == tenant_id,
            Sale.order_number.like("ORD%")
        )
    )
    max_no = result.scalar()
    num = 1
    if max_no and max_no[3:].isdigit():
        num = int(max_no[3:]) + 1
    return f"ORD{num:05d}"


async def get_sale_or_404(db: AsyncSession, tenant_id: int, sale_id: int) -> Sale:
    result = await db.execute(
        select(Sale)
        .options(selectinload(Sale.items), selectinload(Sale.customer))
        .where(Sale.id == sale_id, Sale.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )
    sale = result.scalar_one_or_none()
    if not sale:
        raise HTTPException(status_code=404, detail=f"订单不存在: {sale_id}")
    return sale


async def _build_item(db: AsyncSession, tenant_id: int, data: SaleItemIn) -> SaleItem:
    product = await get_product_or_404(db, tenant_id, data.product_id)
    unit_price = data.unit_price if data.unit_price is not None else product.price
    quantity = data.quantity
    return SaleItem(
        product_id=product.id,
        location_id=data.location_id,
        product_name=product.name,
        product_sku=product.sku,
        quantity=quantity,
        unit_price=to_money(unit_price),
        subtotal=to_money(Decimal(quantity) * to_money(unit_price)),
        notes=data.notes)


def _apply_totals(sale: Sale) -> None:
    totals = calculate_order_totals(sale.items, sale.tax_rate, sale.discount_type, sale.discount_value)
    sale.subtotal = totals["subtotal"]
    sale.tax_amount = totals["tax_amount"]
    sale.discount_amount = totals["discount_amount"]
    sale.total = totals["total"]
    sale.commission_amount = _commission(sale.total, sale.commission_rate)


async def create_sale(db: AsyncSession, tenant_id: int, data: SaleCreate) -> Sale:
    """创建销售订单

    有库位的明细逐条扣减库存，任何一条库存不足都会使整个订单失败
    """
    customer = await get_customer_or_404(db, tenant_id, data.customer_id)

    order_number = data.order_number or await generate_order_number(db, tenant_id)
    if data.order_number:
        exists = await db.execute(
            select(func.count(Sale.id)).where(
                Sale.tenant_id == tenant_id,
                Sale.order_number == order_number
            )
        )
        if (exists.scalar() or 0) > 0:
            raise HTTPException(status_code=409, detail=f"订单号已存在: {order_number}")

    items = [await _build_item(db, tenant_id, item) for item in data.items]

    order_date = data.order_date or datetime.utcnow()
    sale = Sale(
        tenant_id=tenant_id,
        order_number=order_number,
        customer=customer,
        customer_code=customer.code,
        status=data.status,
        tax_rate=to_money(data.tax_rate),
        discount_type=data.discount_type,
        discount_value=to_money(data.discount_value),
        amount_paid=Decimal("0.00"),
        payment_status="unpaid",
        payment_method=data.payment_method,
        due_date=data.due_date or order_date + timedelta(days=settings.PAYMENT_TERM_DAYS),
        shipping_address=data.shipping_address.model_dump() if data.shipping_address else None,
        shipping_method=data.shipping_method,
        tracking_number=data.tracking_number,
        sales_rep_id=data.sales_rep_id,
        commission_rate=to_money(data.commission_rate),
        notes=data.notes,
        custom_fields=data.custom_fields,
        order_date=order_date)
    sale.items = items
    _apply_totals(sale)

    db.add(sale)
    await db.flush()

    for item in items:
        if item.location_id:
            await remove_inventory(
                db, tenant_id, item.product_id, item.location_id, item.quantity,
                transaction_type="sold",
                reference=order_number,
                reason=f"销售订单 {order_number}")

    logger.info(f"🧾 创建销售订单 {order_number}: 客户 {customer.code}, 合计 {sale.total}")
    return sale


async def update_sale(db: AsyncSession, tenant_id: int, sale: Sale, data: SaleUpdate) -> Sale:
    """修改销售订单

    传入 items 时按明细ID比对：
    - 删除或减少的数量退回库存（returned）
    - 新增或增加的数量扣减库存（sold）
    先处理退回再处理扣减，避免同库位的调整被误判为库存不足
    """
    update_data = data.model_dump(exclude_unset=True, exclude={"items"})
    if "shipping_address" in update_data and data.shipping_address is not None:
        update_data["shipping_address"] = data.shipping_address.model_dump()
    for field in ("tax_rate", "discount_value", "commission_rate"):
        if update_data.get(field) is not None:
            update_data[field] = to_money(update_data[field])
    for field, value in update_data.items():
        setattr(sale, field, value)

    if data.items is not None:
        if not data.items:
            raise HTTPException(status_code=400, detail="订单至少需要一条明细")

        existing = {item.id: item for item in sale.items}
        unknown = [i.id for i in data.items if i.id is not None and i.id not in existing]
        if unknown:
            raise HTTPException(status_code=400, detail=f"订单明细不存在: {unknown}")

        returns: List[Tuple[int, int, int]] = []
        removals: List[Tuple[int, int, int]] = []
        kept_ids = set()

        for item_in in data.items:
            if item_in.id is None:
                new_item = await _build_item(db, tenant_id, item_in)
                sale.items.append(new_item)
                if new_item.location_id:
                    removals.append((new_item.product_id, new_item.location_id, new_item.quantity))
                continue

            item = existing[item_in.id]
            kept_ids.add(item.id)
            same_stock = item.product_id == item_in.product_id and item.location_id == item_in.location_id
            if same_stock:
                delta = item_in.quantity - item.quantity
                if delta > 0 and item.location_id:
                    removals.append((item.product_id, item.location_id, delta))
                elif delta < 0 and item.location_id:
                    returns.append((item.product_id, item.location_id, -delta))
            else:
                if item.location_id:
                    returns.append((item.product_id, item.location_id, item.quantity))
                if item_in.location_id:
                    removals.append((item_in.product_id, item_in.location_id, item_in.quantity))
                product = await get_product_or_404(db, tenant_id, item_in.product_id)
                item.product_id = product.id
                item.product_name = product.name
                item.product_sku = product.sku
                item.location_id = item_in.location_id

            item.quantity = item_in.quantity
            if item_in.unit_price is not None:
                item.unit_price = to_money(item_in.unit_price)
            if item_in.notes is not None:
                item.notes = item_in.notes
            item.subtotal = to_money(Decimal(item.quantity) * to_money(item.unit_price))

        for item_id, item in existing.items():
            if item_id not in kept_ids:
                if item.location_id:
                    returns.append((item.product_id, item.location_id, item.quantity))
                sale.items.remove(item)

        for product_id, location_id, quantity in returns:
            await add_inventory(
                db, tenant_id, product_id, location_id, quantity,
                transaction_type="returned",
                reference=sale.order_number,
                reason=f"订单 {sale.order_number} 修改退回")
        for product_id, location_id, quantity in removals:
            await remove_inventory(
                db, tenant_id, product_id, location_id, quantity,
                transaction_type="sold",
                reference=sale.order_number,
                reason=f"订单 {sale.order_number} 修改出库")

    _apply_totals(sale)
    refresh_payment_status(sale)
    await db.flush()

    logger.info(f"✏️ 修改销售订单 {sale.order_number}: 合计 {sale.total}")
    return sale


async def delete_sale(db: AsyncSession, tenant_id: int, sale: Sale) -> None:
    """删除销售订单，有库位的明细全部退回库存"""
    for item in sale.items:
        if item.location_id:
            await add_inventory(
                db, tenant_id, item.product_id, item.location_id, item.quantity,
                transaction_type="returned",
                reference=sale.order_number,
                reason=f"删除订单 {sale.order_number}")
    await db.delete(sale)
    await db.flush()
    logger.info(f"🗑️ 删除销售订单 {sale.order_number}")


def calculate_sales_metrics(
    sales: Iterable[Any],
    customers: Optional[Dict[int, Any]] = None,
    top_n: Optional[int] = None) -> Dict[str, Any]:
    """销售指标

    customers 为 {客户ID: 客户} 映射，用于补充排行中的客户名称和编码
    """
    sales = list(sales)
    customers = customers or {}
    top_n = top_n or settings.METRICS_TOP_N

    total_sales = len(sales)
    total_revenue = sum(float(s.total or 0) for s in sales)
    average_order_value = total_revenue / total_sales if total_sales else 0.0

    payment_status_counts = {"paid": 0, "partial": 0, "unpaid": 0}
    status_counts = {status: 0 for status in ("pending", "processing", "shipped", "delivered", "cancelled")}
    for s in sales:
        payment_status_counts[s.payment_status] = payment_status_counts.get(s.payment_status, 0) + 1
        status_counts[s.status] = status_counts.get(s.status, 0) + 1

    products: Dict[int, Dict[str, Any]] = {}
    for s in sales:
        for item in s.items or []:
            if not item.product_id:
                continue
            entry = products.setdefault(item.product_id, {
                "id": item.product_id,
                "name": item.product_name or "Unknown Product",
                "sku": item.product_sku or "Unknown SKU",
                "quantity": 0,
                "revenue": 0.0,
            })
            entry["quantity"] += item.quantity
            entry["revenue"] += item.quantity * float(item.unit_price or 0)

    buyers: Dict[int, Dict[str, Any]] = {}
    for s in sales:
        if not s.customer_id:
            continue
        customer = customers.get(s.customer_id)
        entry = buyers.setdefault(s.customer_id, {
            "id": s.customer_id,
            "name": customer.name if customer else "Unknown Customer",
            "code": customer.code if customer else (s.customer_code or "Unknown Code"),
            "revenue": 0.0,
            "order_count": 0,
        })
        entry["revenue"] += float(s.total or 0)
        entry["order_count"] += 1

    return {
        "total_sales": total_sales,
        "total_revenue": round(total_revenue, 2),
        "average_order_value": round(average_order_value, 2),
        "payment_status_counts": payment_status_counts,
        "status_counts": status_counts,
        "top_products": {
            "by_quantity": sorted(products.values(), key=lambda p: p["quantity"], reverse=True)[:top_n],
            "by_revenue": sorted(products.values(), key=lambda p: p["revenue"], reverse=True)[:top_n],
        },
        "top_customers": {
            "by_revenue": sorted(buyers.values(), key=lambda c: c["revenue"], reverse=True)[:top_n],
            "by_orders": sorted(buyers.values(), key=lambda c: c["order_count"], reverse=True)[:top_n],
        },
    }


def calculate_commission(sales_rep_id: int, sales: Iterable[Any]) -> Dict[str, Any]:
    """销售代表提成汇总，按订单状态和收款状态分别汇总"""
    sales = list(sales)
    by_status = {status: 0.0 for status in ("pending", "processing", "shipped", "delivered", "cancelled")}
    by_payment_status = {"paid": 0.0, "partial": 0.0, "unpaid": 0.0}
    total_commission = 0.0
    for s in sales:
        commission = float(s.commission_amount or 0)
        total_commission += commission
        by_status[s.status] = by_status.get(s.status, 0.0) + commission
        by_payment_status[s.payment_status] = by_payment_status.get(s.payment_status, 0.0) + commission

    return {
        "sales_rep_id": sales_rep_id,
        "total_sales": len(sales),
        "total_revenue": round(sum(float(s.total or 0) for s in sales), 2),
        "total_commission": round(total_commission, 2),
        "commission_by_status": {k: round(v, 2) for k, v in by_status.items()},
        "commission_by_payment_status": {k: round(v, 2) for k, v in by_payment_status.items()},
        "sales": [
            {
                "id": s.id,
                "order_number": s.order_number,
                "order_date": s.order_date,
                "status": s.status,
                "payment_status": s.payment_status,
                "total": float(s.total or 0),
                "commission_amount": float(s.commission_amount or 0),
            }
            for s in sales
        ],
    }


async def load_sales(
    db: AsyncSession,
    tenant_id: int,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    sales_rep_id: Optional[int] = None) -> List[Sale]:
    """按时间范围加载订单（含明细）"""
    query = select(Sale).options(selectinload(Sale.items)).where(Sale.tenant_id == tenant_id)
    if start_date:
        query = query.where(Sale.order_date >= start_date)
    if end_date:
        query = query.where(Sale.order_date <= end_date)
    if sales_rep_id is not None:
        query = query.where(Sale.sales_rep_id == sales_rep_id)
    result = await db.execute(query.order_by(Sale.order_date))
    return list(result.scalars().all())
