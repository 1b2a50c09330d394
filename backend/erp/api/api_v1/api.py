"""API 路由聚合（无登录认证，按 X-Tenant-ID 区分租户）"""
from fastapi import APIRouter

from erp.api.api_v1.endpoints import (
    tenants, users, customers, products, locations, inventory,
    sales, vendors, purchase_orders, reports, dashboards, system
)

api_router = APIRouter()

# 基础资料
api_router.include_router(tenants.router, prefix="/tenants", tags=["租户管理"])
api_router.include_router(users.router, prefix="/users", tags=["用户管理"])
api_router.include_router(customers.router, prefix="/customers", tags=["客户管理"])
api_router.include_router(vendors.router, prefix="/vendors", tags=["供应商管理"])

# 商品与库存
api_router.include_router(products.router, prefix="/products", tags=["商品管理"])
api_router.include_router(locations.router, prefix="/locations", tags=["库位管理"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["库存管理"])

# 业务单据
api_router.include_router(sales.router, prefix="/sales", tags=["销售订单"])
api_router.include_router(purchase_orders.router, prefix="/purchase-orders", tags=["采购订单"])

# 报表与仪表盘
api_router.include_router(reports.router, prefix="/reports", tags=["报表"])
api_router.include_router(dashboards.router, prefix="/dashboards", tags=["仪表盘"])

# 系统
api_router.include_router(system.router, tags=["系统"])
