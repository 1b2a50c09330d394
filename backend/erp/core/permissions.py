"""角色与默认权限"""
from typing import List

VIEW_CUSTOMERS = "view_customers"
CREATE_CUSTOMER = "create_customer"
EDIT_CUSTOMER = "edit_customer"
DELETE_CUSTOMER = "delete_customer"

VIEW_INVENTORY = "view_inventory"
CREATE_PRODUCT = "create_product"
EDIT_PRODUCT = "edit_product"
DELETE_PRODUCT = "delete_product"
MANAGE_INVENTORY = "manage_inventory"

VIEW_SALES = "view_sales"
CREATE_SALE = "create_sale"
EDIT_SALE = "edit_sale"
DELETE_SALE = "delete_sale"

VIEW_VENDORS = "view_vendors"
CREATE_VENDOR = "create_vendor"
EDIT_VENDOR = "edit_vendor"
DELETE_VENDOR = "delete_vendor"

VIEW_REPORTS = "view_reports"
MANAGE_USERS = "manage_users"
MANAGE_TENANT = "manage_tenant"

ALL_PERMISSIONS = [
    VIEW_CUSTOMERS, CREATE_CUSTOMER, EDIT_CUSTOMER, DELETE_CUSTOMER,
    VIEW_INVENTORY, CREATE_PRODUCT, EDIT_PRODUCT, DELETE_PRODUCT, MANAGE_INVENTORY,
    VIEW_SALES, CREATE_SALE, EDIT_SALE, DELETE_SALE,
    VIEW_VENDORS, CREATE_VENDOR, EDIT_VENDOR, DELETE_VENDOR,
    VIEW_REPORTS, MANAGE_USERS, MANAGE_TENANT,
]

_USER_PERMISSIONS = [
    VIEW_CUSTOMERS, VIEW_INVENTORY, VIEW_SALES, CREATE_SALE, VIEW_VENDORS, VIEW_REPORTS,
]

ROLE_PERMISSIONS = {
    "admin": ALL_PERMISSIONS,
    "manager": [
        VIEW_CUSTOMERS, CREATE_CUSTOMER, EDIT_CUSTOMER,
        VIEW_INVENTORY, CREATE_PRODUCT, EDIT_PRODUCT, MANAGE_INVENTORY,
        VIEW_SALES, CREATE_SALE, EDIT_SALE,
        VIEW_VENDORS, CREATE_VENDOR, EDIT_VENDOR,
        VIEW_REPORTS,
    ],
    # 销售：在普通用户基础上可以建客户、改订单
    "sales": _USER_PERMISSIONS + [CREATE_CUSTOMER, EDIT_SALE],
    "user": _USER_PERMISSIONS,
}


def default_permissions(role: str) -> List[str]:
    return list(ROLE_PERMISSIONS.get(role, []))
