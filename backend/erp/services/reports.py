"""
报表服务

报表生成函数都是纯函数：输入已加载的数据集合，按时间段分组后汇总。
数据加载（load_* 函数）与生成分离，便于单独测试各报表的计算逻辑。

支持的报表：
- sales_performance: 销售业绩
- inventory_turnover: 库存周转
- customer_behavior: 客户行为
- financial: 收支与利润
- custom: 自定义指标 / 维度 / 过滤
"""

import csv
import io
import logging
import math
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Iterable, Tuple

from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.config import settings
from erp.models import Customer, Product, Sale, PurchaseOrder, InventoryTransaction
from erp.services.customers import payment_due_date

logger = logging.getLogger(__name__)

SALE_METRICS = ("sales", "revenue", "orders")
PURCHASE_METRICS = ("purchases", "cost")
INVENTORY_METRICS = ("inventory", "stock_levels")
DERIVED_METRICS = ("profit", "margin")


class ReportError(ValueError):
    """报表参数或数据无效"""
    pass


# ==================== 时间分组 ====================

def period_key(dt: datetime, group_by: str = "month") -> str:
    """时间段标识

    - day: YYYY-MM-DD
    - week: 所在周（周日为第一天）的周日日期 YYYY-MM-DD
    - month: YYYY-MM
    - quarter: YYYY-Q#
    - year: YYYY
    未知的分组方式按月处理
    """
    if group_by == "day":
        return dt.strftime("%Y-%m-%d")
    if group_by == "week":
        # weekday(): 周一=0 ... 周日=6
        week_start = dt - timedelta(days=(dt.weekday() + 1) % 7)
        return week_start.strftime("%Y-%m-%d")
    if group_by == "quarter":
        return f"{dt.year}-Q{(dt.month - 1) // 3 + 1}"
    if group_by == "year":
        return f"{dt.year}"
    return dt.strftime("%Y-%m")


def group_by_period(orders: Iterable[Any], group_by: str = "month") -> Dict[str, Dict[str, Any]]:
    """按时间段分组汇总订单

    Returns:
        {period: {period, count, total, items}}，items 为明细数量合计
    """
    grouped: Dict[str, Dict[str, Any]] = {}
    for order in orders:
        key = period_key(order.order_date, group_by)
        bucket = grouped.setdefault(key, {"period": key, "count": 0, "total": 0.0, "items": 0})
        bucket["count"] += 1
        bucket["total"] += float(order.total or 0)
        bucket["items"] += sum(item.quantity for item in (order.items or []))
    for bucket in grouped.values():
        bucket["total"] = round(bucket["total"], 2)
    return grouped


def _in_range(dt: Optional[datetime], start: Optional[datetime], end: Optional[datetime]) -> bool:
    if dt is None:
        return False
    if start and dt < start:
        return False
    if end and dt > end:
        return False
    return True


def _avg(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _time_range(start: Optional[datetime], end: Optional[datetime], **extra: Any) -> Dict[str, Any]:
    return {"start_date": start, "end_date": end, **extra}


# ==================== 销售业绩 ====================

def generate_sales_performance_report(
    sales: Iterable[Any],
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    group_by: str = "month",
    customer_ids: Optional[List[int]] = None,
    product_ids: Optional[List[int]] = None,
    customers: Optional[Dict[int, Any]] = None,
    top_n: Optional[int] = None) -> Dict[str, Any]:
    """销售业绩报表

    商品过滤保留包含任一指定商品的订单（订单内其他明细也计入）
    """
    customers = customers or {}
    top_n = top_n or settings.REPORT_TOP_N

    selected = [s for s in sales if _in_range(s.order_date, start_date, end_date)]
    if customer_ids:
        selected = [s for s in selected if s.customer_id in customer_ids]
    if product_ids:
        selected = [
            s for s in selected
            if any(item.product_id in product_ids for item in (s.items or []))
        ]

    total_sales = sum(float(s.total or 0) for s in selected)
    total_orders = len(selected)

    products: Dict[int, Dict[str, Any]] = {}
    buyers: Dict[int, Dict[str, Any]] = {}
    for s in selected:
        for item in s.items or []:
            entry = products.setdefault(item.product_id, {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": 0,
                "revenue": 0.0,
            })
            entry["quantity"] += item.quantity
            entry["revenue"] += float(item.subtotal or 0)

        customer = customers.get(s.customer_id)
        entry = buyers.setdefault(s.customer_id, {
            "customer_id": s.customer_id,
            "customer_name": customer.name if customer else None,
            "order_count": 0,
            "revenue": 0.0,
        })
        entry["order_count"] += 1
        entry["revenue"] += float(s.total or 0)

    return {
        "time_range": _time_range(start_date, end_date, group_by=group_by),
        "summary": {
            "total_sales": round(total_sales, 2),
            "total_orders": total_orders,
            "average_order_value": round(total_sales / total_orders, 2) if total_orders else 0.0,
        },
        "sales_by_period": group_by_period(selected, group_by),
        "top_products": sorted(products.values(), key=lambda p: p["revenue"], reverse=True)[:top_n],
        "top_customers": sorted(buyers.values(), key=lambda c: c["revenue"], reverse=True)[:top_n],
    }


# ==================== 库存周转 ====================

def generate_inventory_turnover_report(
    products: Iterable[Any],
    transactions: Iterable[Any],
    start_date: datetime,
    end_date: datetime,
    location_ids: Optional[List[int]] = None,
    categories: Optional[List[str]] = None) -> Dict[str, Any]:
    """库存周转报表

    - 期初库存 = 开始日期之前所有流水变动之和
    - 期末库存 = 期初 + 期间内流水变动之和
    - 周转率 = 期间销量 / 平均库存（平均库存为 0 时记 0）
    - 年化周转率 = 周转率 × 365 / 期间天数
    - 库存天数 = 365 / 年化周转率
    """
    products = list(products)
    if categories:
        products = [p for p in products if p.category in categories]

    txns = list(transactions)
    if location_ids:
        txns = [t for t in txns if t.location_id in location_ids]

    days = max((end_date - start_date).total_seconds() / 86400, 1)

    metrics: Dict[int, Dict[str, Any]] = {
        p.id: {
            "product_id": p.id,
            "product_name": p.name,
            "sku": p.sku,
            "category": p.category,
            "beginning_inventory": 0,
            "ending_inventory": 0,
            "sold": 0,
            "received": 0,
            "turnover_rate": 0.0,
            "annualized_turnover": 0.0,
            "days_on_hand": 0.0,
        }
        for p in products
    }

    in_range_change: Dict[int, int] = {}
    for t in txns:
        m = metrics.get(t.product_id)
        if m is None or t.occurred_at > end_date:
            continue
        if t.occurred_at < start_date:
            m["beginning_inventory"] += t.quantity_change
            continue
        in_range_change[t.product_id] = in_range_change.get(t.product_id, 0) + t.quantity_change
        if t.transaction_type == "sold":
            m["sold"] += abs(t.quantity_change)
        elif t.transaction_type == "received":
            m["received"] += abs(t.quantity_change)

    for product_id, m in metrics.items():
        m["ending_inventory"] = m["beginning_inventory"] + in_range_change.get(product_id, 0)
        average_inventory = (m["beginning_inventory"] + m["ending_inventory"]) / 2
        if average_inventory > 0:
            m["turnover_rate"] = m["sold"] / average_inventory
            m["annualized_turnover"] = m["turnover_rate"] * 365 / days
            if m["annualized_turnover"] > 0:
                m["days_on_hand"] = 365 / m["annualized_turnover"]
        m["turnover_rate"] = round(m["turnover_rate"], 4)
        m["annualized_turnover"] = round(m["annualized_turnover"], 4)
        m["days_on_hand"] = round(m["days_on_hand"], 2)

    product_metrics = sorted(metrics.values(), key=lambda m: m["turnover_rate"], reverse=True)

    category_groups: Dict[str, List[Dict[str, Any]]] = {}
    for m in product_metrics:
        category_groups.setdefault(m["category"] or "Uncategorized", []).append(m)
    category_metrics = [
        {
            "category": category,
            "product_count": len(group),
            "total_sold": sum(m["sold"] for m in group),
            "average_turnover_rate": round(_avg([m["turnover_rate"] for m in group]), 4),
            "average_days_on_hand": round(_avg([m["days_on_hand"] for m in group]), 2),
        }
        for category, group in category_groups.items()
    ]

    return {
        "time_range": _time_range(start_date, end_date, days=round(days, 2)),
        "summary": {
            "total_products": len(product_metrics),
            "total_sold": sum(m["sold"] for m in product_metrics),
            "average_turnover_rate": round(_avg([m["turnover_rate"] for m in product_metrics]), 4),
            "average_days_on_hand": round(_avg([m["days_on_hand"] for m in product_metrics]), 2),
        },
        "product_metrics": product_metrics,
        "category_metrics": category_metrics,
    }


# ==================== 客户行为 ====================

def generate_customer_behavior_report(
    customers: Iterable[Any],
    sales: Iterable[Any],
    products: Optional[Dict[int, Any]] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    customer_ids: Optional[List[int]] = None,
    segments: Optional[List[str]] = None,
    now: Optional[datetime] = None) -> Dict[str, Any]:
    """客户行为报表

    products 为 {商品ID: 商品}，用于统计客户购买的品类
    """
    products = products or {}
    now = now or datetime.utcnow()

    customers = list(customers)
    if customer_ids:
        customers = [c for c in customers if c.id in customer_ids]
    if segments:
        customers = [c for c in customers if c.segment in segments]

    stats: Dict[int, Dict[str, Any]] = {}
    categories: Dict[int, Dict[str, int]] = {}
    for c in customers:
        stats[c.id] = {
            "customer_id": c.id,
            "customer_name": c.name,
            "customer_code": c.code,
            "segment": c.segment or "Uncategorized",
            "order_count": 0,
            "total_spent": 0.0,
            "average_order_value": 0.0,
            "first_purchase_date": None,
            "last_purchase_date": None,
            "days_since_last_purchase": None,
            "purchase_frequency_days": 0.0,
            "product_categories": [],
            "payment_performance": {"on_time_payments": 0, "late_payments": 0, "on_time_rate": 0.0},
        }
        categories[c.id] = {}

    for s in sales:
        entry = stats.get(s.customer_id)
        if entry is None or not _in_range(s.order_date, start_date, end_date):
            continue
        entry["order_count"] += 1
        entry["total_spent"] += float(s.total or 0)
        if entry["first_purchase_date"] is None or s.order_date < entry["first_purchase_date"]:
            entry["first_purchase_date"] = s.order_date
        if entry["last_purchase_date"] is None or s.order_date > entry["last_purchase_date"]:
            entry["last_purchase_date"] = s.order_date

        for item in s.items or []:
            product = products.get(item.product_id)
            if product is not None and product.category:
                bucket = categories[s.customer_id]
                bucket[product.category] = bucket.get(product.category, 0) + item.quantity

        if s.payment_status == "paid" and s.payment_date:
            due = payment_due_date(s)
            perf = entry["payment_performance"]
            if due is not None and s.payment_date <= due:
                perf["on_time_payments"] += 1
            else:
                perf["late_payments"] += 1

    for customer_id, entry in stats.items():
        count = entry["order_count"]
        entry["total_spent"] = round(entry["total_spent"], 2)
        entry["average_order_value"] = round(entry["total_spent"] / count, 2) if count else 0.0
        if entry["last_purchase_date"] is not None:
            entry["days_since_last_purchase"] = math.floor(
                (now - entry["last_purchase_date"]).total_seconds() / 86400
            )
        if count > 1:
            span_days = math.floor(
                (entry["last_purchase_date"] - entry["first_purchase_date"]).total_seconds() / 86400
            )
            entry["purchase_frequency_days"] = round(span_days / (count - 1), 2)

        perf = entry["payment_performance"]
        paid = perf["on_time_payments"] + perf["late_payments"]
        perf["on_time_rate"] = round(perf["on_time_payments"] / paid * 100, 2) if paid else 0.0

        entry["product_categories"] = [
            {"category": category, "quantity": quantity}
            for category, quantity in sorted(
                categories[customer_id].items(), key=lambda kv: kv[1], reverse=True
            )
        ]

    customer_metrics = sorted(stats.values(), key=lambda e: e["total_spent"], reverse=True)

    segment_groups: Dict[str, List[Dict[str, Any]]] = {}
    for entry in customer_metrics:
        segment_groups.setdefault(entry["segment"], []).append(entry)
    segment_metrics = [
        {
            "segment": segment,
            "customer_count": len(group),
            "total_revenue": round(sum(e["total_spent"] for e in group), 2),
            "average_order_value": round(_avg([e["average_order_value"] for e in group]), 2),
            "average_purchase_frequency": round(_avg([e["purchase_frequency_days"] for e in group]), 2),
            "on_time_payment_rate": round(_avg([e["payment_performance"]["on_time_rate"] for e in group]), 2),
        }
        for segment, group in segment_groups.items()
    ]

    return {
        "time_range": _time_range(start_date, end_date),
        "summary": {
            "total_customers": len(customer_metrics),
            "total_revenue": round(sum(e["total_spent"] for e in customer_metrics), 2),
            "average_order_value": round(_avg([e["average_order_value"] for e in customer_metrics]), 2),
            "average_purchase_frequency": round(
                _avg([e["purchase_frequency_days"] for e in customer_metrics]), 2
            ),
        },
        "customer_metrics": customer_metrics,
        "segment_metrics": segment_metrics,
    }


# ==================== 收支利润 ====================

def _outstanding(orders: Iterable[Any]) -> float:
    return round(sum(
        float(o.total or 0) - float(o.amount_paid or 0)
        for o in orders if o.payment_status != "paid"
    ), 2)


def generate_financial_report(
    sales: Iterable[Any],
    purchase_orders: Iterable[Any],
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    group_by: str = "month") -> Dict[str, Any]:
    """收支报表

    收入取销售单合计，成本取采购单合计，按时间段对齐后计算利润与毛利率；
    应收 = 未结清销售单的 (合计 - 已收)，应付同理
    """
    sales = [s for s in sales if _in_range(s.order_date, start_date, end_date)]
    purchase_orders = [po for po in purchase_orders if _in_range(po.order_date, start_date, end_date)]

    grouped_sales = group_by_period(sales, group_by)
    grouped_purchases = group_by_period(purchase_orders, group_by)

    periods: Dict[str, Dict[str, Any]] = {}
    for key in set(grouped_sales) | set(grouped_purchases):
        revenue = grouped_sales.get(key, {}).get("total", 0.0)
        cost = grouped_purchases.get(key, {}).get("total", 0.0)
        profit = revenue - cost
        periods[key] = {
            "period": key,
            "revenue": round(revenue, 2),
            "cost": round(cost, 2),
            "profit": round(profit, 2),
            "margin": round(profit / revenue * 100, 2) if revenue > 0 else 0.0,
        }
    financials = [periods[key] for key in sorted(periods)]

    total_revenue = sum(f["revenue"] for f in financials)
    total_cost = sum(f["cost"] for f in financials)
    total_profit = total_revenue - total_cost

    return {
        "time_range": _time_range(start_date, end_date, group_by=group_by),
        "summary": {
            "total_revenue": round(total_revenue, 2),
            "total_cost": round(total_cost, 2),
            "total_profit": round(total_profit, 2),
            "overall_margin": round(total_profit / total_revenue * 100, 2) if total_revenue > 0 else 0.0,
            "accounts_receivable": _outstanding(sales),
            "accounts_payable": _outstanding(purchase_orders),
        },
        "financials_by_period": financials,
    }


# ==================== 自定义报表 ====================

def get_nested_value(row: Any, path: str) -> Any:
    """按点号路径取值，如 address.city"""
    value = row
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def _compare(field_value: Any, value: Any, greater: bool) -> bool:
    if field_value is None or value is None:
        return False
    try:
        return field_value > value if greater else field_value < value
    except TypeError:
        return float(field_value) > float(value) if greater else float(field_value) < float(value)


def match_filter(row: Dict[str, Any], flt: Dict[str, Any]) -> bool:
    """判断一行数据是否满足过滤条件，未知操作符视为满足"""
    field_value = get_nested_value(row, flt["field"])
    operator = flt.get("operator")
    value = flt.get("value")

    if operator == "equals":
        return field_value == value
    if operator == "not_equals":
        return field_value != value
    if operator == "greater_than":
        return _compare(field_value, value, greater=True)
    if operator == "less_than":
        return _compare(field_value, value, greater=False)
    if operator == "contains":
        return str(value) in str(field_value)
    if operator == "not_contains":
        return str(value) not in str(field_value)
    if operator == "in":
        return isinstance(value, list) and field_value in value
    if operator == "not_in":
        return isinstance(value, list) and field_value not in value
    return True


def _aggregate_metrics(rows: List[Dict[str, Any]], metrics: List[str]) -> Dict[str, float]:
    sales = [r for r in rows if r.get("type") == "sale"]
    purchases = [r for r in rows if r.get("type") == "purchase"]
    products = [r for r in rows if r.get("type") == "product"]

    revenue = sum(float(r.get("total") or 0) for r in sales)
    cost = sum(float(r.get("total") or 0) for r in purchases)

    result: Dict[str, float] = {}
    for metric in metrics:
        if metric in ("sales", "revenue"):
            result[metric] = round(revenue, 2)
        elif metric == "orders":
            result[metric] = len(sales)
        elif metric in PURCHASE_METRICS:
            result[metric] = round(cost, 2)
        elif metric in INVENTORY_METRICS:
            result[metric] = sum(int(r.get("quantity") or 0) for r in products)
        elif metric == "profit":
            result[metric] = round(revenue - cost, 2)
        elif metric == "margin":
            result[metric] = round((revenue - cost) / revenue * 100, 2) if revenue > 0 else 0.0
        else:
            # 任意数值字段求和
            result[metric] = sum(
                r[metric] for r in rows
                if isinstance(r.get(metric), (int, float)) and not isinstance(r.get(metric), bool)
            )
    return result


def _dimension_value(row: Dict[str, Any], dimension: str) -> Any:
    value = get_nested_value(row, dimension)
    return value if value not in (None, "") else "Unknown"


def generate_custom_report(
    rows: Iterable[Dict[str, Any]],
    metrics: List[str],
    dimensions: Optional[List[str]] = None,
    filters: Optional[List[Dict[str, Any]]] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None) -> Dict[str, Any]:
    """自定义报表

    rows 为带 type（sale / purchase / product）的字典行；
    有维度时按维度组合分组计算指标，否则整体计算一行
    """
    if not metrics:
        raise ReportError("至少需要一个指标")
    dimensions = dimensions or []
    filters = filters or []

    data = list(rows)
    for flt in filters:
        data = [row for row in data if match_filter(row, flt)]

    if dimensions:
        groups: Dict[Tuple[Any, ...], List[Dict[str, Any]]] = {}
        for row in data:
            key = tuple(_dimension_value(row, d) for d in dimensions)
            groups.setdefault(key, []).append(row)
        result_rows = [
            {
                "dimensions": dict(zip(dimensions, key)),
                "metrics": _aggregate_metrics(group, metrics),
            }
            for key, group in groups.items()
        ]
    else:
        result_rows = [{"metrics": _aggregate_metrics(data, metrics)}]

    return {
        "time_range": _time_range(start_date, end_date),
        "dimensions": dimensions,
        "metrics": metrics,
        "filters": filters,
        "data": result_rows,
    }


def sale_to_row(sale: Sale, customer: Optional[Customer] = None) -> Dict[str, Any]:
    return {
        "type": "sale",
        "id": sale.id,
        "order_number": sale.order_number,
        "customer_id": sale.customer_id,
        "customer_code": sale.customer_code,
        "customer": {
            "name": customer.name,
            "segment": customer.segment,
            "address": customer.address or {},
        } if customer else None,
        "status": sale.status,
        "payment_status": sale.payment_status,
        "sales_rep_id": sale.sales_rep_id,
        "subtotal": float(sale.subtotal or 0),
        "tax_amount": float(sale.tax_amount or 0),
        "discount_amount": float(sale.discount_amount or 0),
        "total": float(sale.total or 0),
        "amount_paid": float(sale.amount_paid or 0),
        "order_date": sale.order_date,
        "month": period_key(sale.order_date, "month") if sale.order_date else None,
    }


def purchase_to_row(po: PurchaseOrder) -> Dict[str, Any]:
    return {
        "type": "purchase",
        "id": po.id,
        "po_number": po.po_number,
        "vendor_id": po.vendor_id,
        "vendor_code": po.vendor_code,
        "status": po.status,
        "payment_status": po.payment_status,
        "subtotal": float(po.subtotal or 0),
        "total": float(po.total or 0),
        "amount_paid": float(po.amount_paid or 0),
        "order_date": po.order_date,
        "month": period_key(po.order_date, "month") if po.order_date else None,
    }


def product_to_row(product: Product) -> Dict[str, Any]:
    return {
        "type": "product",
        "id": product.id,
        "sku": product.sku,
        "name": product.name,
        "category": product.category,
        "strain_type": product.strain_type,
        "vendor_id": product.vendor_id,
        "vendor_code": product.vendor_code,
        "price": float(product.price or 0),
        "cost_price": float(product.cost_price or 0),
        "quantity": product.quantity or 0,
    }


# ==================== 导出 ====================

def _scalar(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def tabulate_report(report: Dict[str, Any]) -> Tuple[List[str], List[List[Any]]]:
    """将报表结果转为表头 + 行

    自定义报表按 维度列 + 指标列 输出；其他报表取其明细列表中的标量字段
    """
    if not isinstance(report, dict):
        raise ReportError("报表数据无效")

    if isinstance(report.get("data"), list):
        dimensions = report.get("dimensions") or []
        metrics = report.get("metrics") or []
        if not metrics and report["data"] and report["data"][0].get("metrics"):
            metrics = list(report["data"][0]["metrics"].keys())
        rows = []
        for item in report["data"]:
            row = [(item.get("dimensions") or {}).get(d, "") for d in dimensions]
            row += [(item.get("metrics") or {}).get(m, 0) for m in metrics]
            rows.append(row)
        return list(dimensions) + list(metrics), rows

    records = None
    for key in ("financials_by_period", "product_metrics", "customer_metrics"):
        if isinstance(report.get(key), list):
            records = report[key]
            break
    if records is None and isinstance(report.get("sales_by_period"), dict):
        records = [report["sales_by_period"][k] for k in sorted(report["sales_by_period"])]
    if records is None:
        raise ReportError("报表数据无效")

    if not records:
        return [], []
    headers = [k for k, v in records[0].items() if not isinstance(v, (list, dict))]
    return headers, [[_scalar(r.get(h)) for h in headers] for r in records]


def export_report_to_csv(report: Dict[str, Any]) -> str:
    """导出 CSV 文本"""
    headers, rows = tabulate_report(report)
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue()


def export_report_to_excel(report: Dict[str, Any], title: str = "Report") -> bytes:
    """导出 Excel（xlsx）"""
    headers, rows = tabulate_report(report)

    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append(row)

    for idx, header in enumerate(headers, start=1):
        ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = max(12, len(str(header)) + 2)

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


# ==================== 数据加载 ====================

async def load_sales_with_items(db: AsyncSession, tenant_id: int) -> List[Sale]:
    result = await db.execute(
        select(Sale).options(selectinload(Sale.items)).where(Sale.tenant_id == tenant_id)
    )
    return list(result.scalars().all())


async def load_purchase_orders_with_items(db: AsyncSession, tenant_id: int) -> List[PurchaseOrder]:
    result = await db.execute(
        select(PurchaseOrder).options(selectinload(PurchaseOrder.items)).where(PurchaseOrder.tenant_id == tenant_id)
    )
    return list(result.scalars().all())


async def load_customers_map(db: AsyncSession, tenant_id: int) -> Dict[int, Customer]:
    result = await db.execute(select(Customer).where(Customer.tenant_id == tenant_id))
    return {c.id: c for c in result.scalars().all()}


async def load_products(db: AsyncSession, tenant_id: int) -> List[Product]:
    result = await db.execute(select(Product).where(Product.tenant_id == tenant_id))
    return list(result.scalars().all())


async def run_report(
    db: AsyncSession,
    tenant_id: int,
    report_type: str,
    params: Dict[str, Any]) -> Dict[str, Any]:
    """加载数据并生成指定类型的报表

    params 为已校验的参数字典（见 ReportParameters）
    """
    now = datetime.utcnow()
    start = params.get("start_date")
    end = params.get("end_date")
    group_by = params.get("group_by") or "month"

    if report_type == "sales_performance":
        return generate_sales_performance_report(
            await load_sales_with_items(db, tenant_id),
            start, end, group_by,
            params.get("customer_ids"), params.get("product_ids"),
            customers=await load_customers_map(db, tenant_id))

    if report_type == "inventory_turnover":
        end = end or now
        start = start or end - timedelta(days=30)
        result = await db.execute(
            select(InventoryTransaction).where(
                InventoryTransaction.tenant_id == tenant_id,
                InventoryTransaction.occurred_at <= end
            )
        )
        return generate_inventory_turnover_report(
            await load_products(db, tenant_id),
            result.scalars().all(),
            start, end,
            params.get("location_ids"), params.get("categories"))

    if report_type == "customer_behavior":
        customers = await load_customers_map(db, tenant_id)
        products = {p.id: p for p in await load_products(db, tenant_id)}
        return generate_customer_behavior_report(
            customers.values(),
            await load_sales_with_items(db, tenant_id),
            products, start, end,
            params.get("customer_ids"), params.get("segments"), now)

    if report_type == "financial":
        return generate_financial_report(
            await load_sales_with_items(db, tenant_id),
            await load_purchase_orders_with_items(db, tenant_id),
            start, end, group_by)

    if report_type == "custom":
        metrics = params.get("metrics") or []
        if not metrics:
            raise ReportError("至少需要一个指标")
        rows: List[Dict[str, Any]] = []
        wants_all = any(m not in SALE_METRICS + PURCHASE_METRICS + INVENTORY_METRICS + DERIVED_METRICS for m in metrics)
        if wants_all or any(m in SALE_METRICS + DERIVED_METRICS for m in metrics):
            customers = await load_customers_map(db, tenant_id)
            rows += [
                sale_to_row(s, customers.get(s.customer_id))
                for s in await load_sales_with_items(db, tenant_id)
                if _in_range(s.order_date, start, end) or (start is None and end is None)
            ]
        if wants_all or any(m in PURCHASE_METRICS + DERIVED_METRICS for m in metrics):
            rows += [
                purchase_to_row(po)
                for po in await load_purchase_orders_with_items(db, tenant_id)
                if _in_range(po.order_date, start, end) or (start is None and end is None)
            ]
        if wants_all or any(m in INVENTORY_METRICS for m in metrics):
            rows += [product_to_row(p) for p in await load_products(db, tenant_id)]
        return generate_custom_report(
            rows, metrics, params.get("dimensions"), params.get("filters"), start, end)

    raise ReportError(f"不支持的报表类型: {report_type}")


def count_report_rows(report: Dict[str, Any]) -> int:
    """报表结果行数（用于执行记录）"""
    try:
        return len(tabulate_report(report)[1])
    except ReportError:
        return 0
