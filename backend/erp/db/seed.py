"""
演示数据
- 默认租户、管理员与经理账户
- 库位、供应商、商品（含初始库存）
- 客户、销售订单、采购订单

可重复执行：租户下已有客户时不再写入业务数据
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Any

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.permissions import default_permissions
from erp.db.init_db import ensure_default_tenant
from erp.models import User, Customer, Vendor, Product, Location
from erp.schemas.sale import SaleCreate, SaleItemIn
from erp.schemas.vendor import PurchaseOrderCreate, PurchaseOrderItemIn
from erp.services.inventory import add_inventory
from erp.services.sales import create_sale, apply_payment
from erp.services.vendors import create_purchase_order

logger = logging.getLogger(__name__)

DEMO_USERS = [
    {"email": "admin@example.com", "first_name": "Admin", "last_name": "User", "role": "admin"},
    {"email": "manager@example.com", "first_name": "Manager", "last_name": "User", "role": "manager"},
]

DEMO_LOCATIONS = [
    {"name": "Main Warehouse", "address": {"street": "100 Industrial Way", "city": "Denver", "state": "CO", "zip": "80216", "country": "US"}},
    {"name": "Retail Backroom", "address": {"street": "22 Market St", "city": "Boulder", "state": "CO", "zip": "80302", "country": "US"}},
]

DEMO_VENDORS = [
    {"code": "V0001", "name": "Green Valley Farms", "contact": "Sam Rivera", "email": "sam@greenvalley.example",
     "category": "grower", "payment_terms": "Net 30"},
    {"code": "V0002", "name": "Mountain Supply Co", "contact": "Alex Chen", "email": "alex@mtnsupply.example",
     "category": "supplies", "payment_terms": "Net 15"},
]

# (SKU, 品名, 分类, 品种, 供应商序号, 售价, 成本, 初始库存)
DEMO_PRODUCTS = [
    ("V0001-PROD001", "Blue Dream", "flower", "hybrid", 0, 1200, 800, 50),
    ("V0001-PROD002", "OG Kush", "flower", "indica", 0, 1400, 900, 30),
    ("V0001-PROD003", "Sour Diesel", "flower", "sativa", 0, 1300, 850, 8),
    ("V0002-PROD004", "Packaging Jars", "supplies", None, 1, 2, 1, 500),
]

DEMO_CUSTOMERS = [
    {"code": "CUST001", "name": "Evergreen Dispensary", "contact": "Jordan Lee", "email": "buyer@evergreen.example",
     "credit_limit": 10000, "payment_terms": "Net 30", "segment": "premium"},
    {"code": "CUST002", "name": "High Plains Retail", "contact": "Taylor Kim", "email": "orders@highplains.example",
     "credit_limit": 5000, "payment_terms": "Net 30", "segment": "standard"},
    {"code": "CUST003", "name": "Front Range Collective", "contact": "Morgan Diaz", "email": "info@frontrange.example",
     "credit_limit": 2500, "payment_terms": "Net 15", "segment": "new"},
]


async def seed_demo_data(db: AsyncSession) -> Dict[str, Any]:
    """写入演示数据，返回各类数据的写入数量"""
    tenant = await ensure_default_tenant(db)
    tenant_id = tenant.id

    created = {"users": 0, "locations": 0, "vendors": 0, "products": 0,
               "customers": 0, "sales": 0, "purchase_orders": 0}

    for data in DEMO_USERS:
        exists = (await db.execute(
            select(func.count(User.id)).where(User.tenant_id == tenant_id, User.email == data["email"])
        )).scalar() or 0
        if not exists:
            db.add(User(**data, tenant_id=tenant_id, permissions=default_permissions(data["role"])))
            created["users"] += 1
    await db.flush()

    customer_count = (await db.execute(
        select(func.count(Customer.id)).where(Customer.tenant_id == tenant_id)
    )).scalar() or 0
    if customer_count:
        await db.commit()
        logger.info("🌱 演示数据已存在，跳过业务数据")
        return {"skipped": True, "created": created}

    locations = [Location(**data, tenant_id=tenant_id) for data in DEMO_LOCATIONS]
    vendors = [Vendor(**data, tenant_id=tenant_id) for data in DEMO_VENDORS]
    db.add_all(locations + vendors)
    await db.flush()
    created["locations"] = len(locations)
    created["vendors"] = len(vendors)

    products = []
    for sku, name, category, strain, vendor_idx, price, cost, qty in DEMO_PRODUCTS:
        vendor = vendors[vendor_idx]
        product = Product(
            tenant_id=tenant_id, sku=sku, name=name, category=category, strain_type=strain,
            vendor_id=vendor.id, vendor_code=vendor.code, price=price, cost_price=cost,
            quantity=0, unit="lb" if category == "flower" else "each")
        db.add(product)
        await db.flush()
        await add_inventory(db, tenant_id, product.id, locations[0].id, qty, reason="初始库存")
        products.append(product)
    created["products"] = len(products)

    customers = [Customer(**data, tenant_id=tenant_id, status="active") for data in DEMO_CUSTOMERS]
    db.add_all(customers)
    await db.flush()
    created["customers"] = len(customers)

    now = datetime.utcnow()
    # (客户序号, 天数前, [(商品序号, 数量)], 是否已付清)
    demo_sales = [
        (0, 45, [(0, 5), (1, 3)], True),
        (0, 10, [(0, 4)], False),
        (1, 3, [(1, 2), (3, 100)], False),
    ]
    for customer_idx, days_ago, lines, paid in demo_sales:
        sale = await create_sale(db, tenant_id, SaleCreate(
            customer_id=customers[customer_idx].id,
            order_date=now - timedelta(days=days_ago),
            status="delivered" if paid else "processing",
            tax_rate=8,
            items=[
                SaleItemIn(product_id=products[p].id, location_id=locations[0].id, quantity=q)
                for p, q in lines
            ],
        ))
        if paid:
            apply_payment(sale, sale.total, "bank_transfer", payment_date=sale.order_date + timedelta(days=20))
        created["sales"] += 1

    await create_purchase_order(db, tenant_id, PurchaseOrderCreate(
        vendor_id=vendors[0].id,
        status="submitted",
        order_date=now - timedelta(days=2),
        expected_delivery_date=now + timedelta(days=5),
        items=[PurchaseOrderItemIn(product_id=products[2].id, quantity=40)],
    ))
    created["purchase_orders"] = 1

    await db.commit()
    logger.info(f"🌱 演示数据已写入: {created}")
    return {"skipped": False, "created": created}
