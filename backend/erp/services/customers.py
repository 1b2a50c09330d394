"""
客户服务 - 客户指标、分层与信用额度建议

指标计算是纯函数，只依赖传入的订单列表，方便在报表和接口中复用
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Iterable

from fastapi import HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.config import settings
from erp.models import Customer, Sale

logger = logging.getLogger(__name__)

SEGMENTS = ("premium", "standard", "new", "inactive")

# 信用额度参数
BASE_CREDIT = 1000
CREDIT_MULTIPLIER = 3000
CREDIT_ROUNDING = 500


async def generate_customer_code(db: AsyncSession, tenant_id: int) -> str:
    """生成客户编码：CUST001"""
    result = await db.execute(
        select(Customer.code).where(
            Customer.tenant_id == tenant_id,
            Customer.code.like("CUST%")
        )
    )
    max_num = 0
    for (code,) in result.all():
        tail = code[4:]
        if tail.isdigit():
            max_num = max(max_num, int(tail))
    return f"CUST{max_num + 1:03d}"


async def get_customer_or_404(db: AsyncSession, tenant_id: int, customer_id: int) -> Customer:
    customer = await db.get(Customer, customer_id)
    if not customer or customer.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail=f"客户不存在: {customer_id}")
    return customer


async def ensure_customer_code_unique(
    db: AsyncSession,
    tenant_id: int,
    code: str,
    exclude_id: Optional[int] = None) -> None:
    query = select(func.count(Customer.id)).where(
        Customer.tenant_id == tenant_id,
        Customer.code == code
    )
    if exclude_id is not None:
        query = query.where(Customer.id != exclude_id)
    if ((await db.execute(query)).scalar() or 0) > 0:
        raise HTTPException(status_code=409, detail=f"客户编码已存在: {code}")


def payment_due_date(sale: Any, payment_term_days: Optional[int] = None) -> Optional[datetime]:
    """订单应收到期日：优先取订单自身的 due_date，否则按默认账期推算"""
    if getattr(sale, "due_date", None):
        return sale.due_date
    if sale.order_date is None:
        return None
    if payment_term_days is None:
        payment_term_days = settings.PAYMENT_TERM_DAYS
    return sale.order_date + timedelta(days=payment_term_days)


def is_paid_on_time(sale: Any, payment_term_days: Optional[int] = None) -> bool:
    if sale.payment_status != "paid" or not sale.payment_date:
        return False
    due = payment_due_date(sale, payment_term_days)
    return due is not None and sale.payment_date <= due


def calculate_customer_metrics(
    sales: Iterable[Any],
    now: Optional[datetime] = None,
    payment_term_days: Optional[int] = None) -> Dict[str, Any]:
    """计算客户指标

    Returns:
        total_sales, order_count, average_order_value, last_order_date,
        days_since_last_order（无订单时为 None）, payment_reliability（0~1）
    """
    sales = list(sales)
    now = now or datetime.utcnow()

    total_sales = sum(float(s.total or 0) for s in sales)
    order_count = len(sales)
    average_order_value = total_sales / order_count if order_count else 0.0

    last_order_date = max((s.order_date for s in sales if s.order_date), default=None)
    days_since_last_order = None
    if last_order_date is not None:
        days_since_last_order = math.floor((now - last_order_date).total_seconds() / 86400)

    on_time = sum(1 for s in sales if is_paid_on_time(s, payment_term_days))
    payment_reliability = on_time / order_count if order_count else 0.0

    return {
        "total_sales": round(total_sales, 2),
        "order_count": order_count,
        "average_order_value": round(average_order_value, 2),
        "last_order_date": last_order_date,
        "days_since_last_order": days_since_last_order,
        "payment_reliability": payment_reliability,
    }


def classify_segment(metrics: Dict[str, Any]) -> str:
    """客户分层

    - new: 没有订单
    - inactive: 超过 90 天未下单
    - premium: 累计销售额 > 10000 且按时付款率 > 0.8
    - standard: 其他
    """
    if metrics["order_count"] == 0:
        return "new"
    if metrics["days_since_last_order"] is not None and metrics["days_since_last_order"] > 90:
        return "inactive"
    if metrics["total_sales"] > 10000 and metrics["payment_reliability"] > 0.8:
        return "premium"
    return "standard"


def recency_factor(days_since_last_order: Optional[int]) -> float:
    if days_since_last_order is None:
        return 0.1
    if days_since_last_order < 30:
        return 1.0
    if days_since_last_order < 60:
        return 0.7
    if days_since_last_order < 90:
        return 0.4
    return 0.1


def round_to_nearest(value: float, step: int = CREDIT_ROUNDING) -> float:
    """四舍五入到 step 的整数倍（.5 向上）"""
    return float(math.floor(value / step + 0.5) * step)


def calculate_credit_recommendation(metrics: Dict[str, Any]) -> float:
    """建议信用额度

    新客户给 1000；老客户 = 1000 + (付款可靠度×2 + min(销售额/5000, 3) + 近期活跃度) × 3000，
    最后取整到 500
    """
    if metrics["order_count"] == 0:
        recommended = BASE_CREDIT
    else:
        reliability = metrics["payment_reliability"] * 2
        volume = min(metrics["total_sales"] / 5000, 3)
        recency = recency_factor(metrics["days_since_last_order"])
        recommended = BASE_CREDIT + (reliability + volume + recency) * CREDIT_MULTIPLIER
    return round_to_nearest(recommended)


async def get_customer_sales(db: AsyncSession, tenant_id: int, customer_id: int) -> List[Sale]:
    result = await db.execute(
        select(Sale).where(
            Sale.tenant_id == tenant_id,
            Sale.customer_id == customer_id
        ).order_by(Sale.order_date.desc())
    )
    return list(result.scalars().all())


async def segment_customers(
    db: AsyncSession,
    tenant_id: int,
    now: Optional[datetime] = None) -> Dict[str, List[Dict[str, Any]]]:
    """按指标将本租户全部客户分为 premium / standard / new / inactive"""
    customers = (await db.execute(
        select(Customer).where(Customer.tenant_id == tenant_id).order_by(Customer.code)
    )).scalars().all()
    sales = (await db.execute(
        select(Sale).where(Sale.tenant_id == tenant_id)
    )).scalars().all()

    sales_by_customer: Dict[int, List[Sale]] = {}
    for sale in sales:
        sales_by_customer.setdefault(sale.customer_id, []).append(sale)

    segments: Dict[str, List[Dict[str, Any]]] = {name: [] for name in SEGMENTS}
    for customer in customers:
        metrics = calculate_customer_metrics(sales_by_customer.get(customer.id, []), now)
        segments[classify_segment(metrics)].append({
            "customer_id": customer.id,
            "code": customer.code,
            "name": customer.name,
            "metrics": metrics,
        })

    logger.info(
        "👥 客户分层完成: " + ", ".join(f"{k}={len(v)}" for k, v in segments.items())
    )
    return segments
