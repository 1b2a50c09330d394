# models包初始化文件
# 导入全部模型，保证 Base.metadata 建表时能看到所有表

from erp.models.tenant import Tenant, User
from erp.models.customer import Customer
from erp.models.vendor import Vendor, VendorCommunicationLog, VendorPaymentSchedule
from erp.models.product import Product, Location
from erp.models.inventory import InventoryRecord, InventoryTransaction
from erp.models.sale import Sale, SaleItem
from erp.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from erp.models.report import ReportDefinition, ReportExecution
from erp.models.dashboard import Dashboard, DashboardWidget

__all__ = [
    "Tenant",
    "User",
    "Customer",
    "Vendor",
    "VendorCommunicationLog",
    "VendorPaymentSchedule",
    "Product",
    "Location",
    "InventoryRecord",
    "InventoryTransaction",
    "Sale",
    "SaleItem",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "ReportDefinition",
    "ReportExecution",
    "Dashboard",
    "DashboardWidget",
]
