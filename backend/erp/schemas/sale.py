"""销售订单Schema"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from datetime import datetime

from erp.schemas.common import Address


SALE_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
DISCOUNT_TYPES = ("percentage", "fixed")


def _check_discount_type(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in DISCOUNT_TYPES:
        raise ValueError("折扣类型必须是 percentage 或 fixed")
    return v


class SaleItemIn(BaseModel):
    """订单明细（更新时带 id 表示已有明细）"""
    id: Optional[int] = Field(None, description="明细ID，新增明细留空")
    product_id: int
    location_id: Optional[int] = Field(None, description="出库库位，留空则不扣库存")
    quantity: int = Field(..., gt=0, description="数量")
    unit_price: Optional[float] = Field(None, ge=0, description="单价，留空取商品售价")
    notes: Optional[str] = Field(None, max_length=200)


class SaleCreate(BaseModel):
    """创建销售订单"""
    order_number: Optional[str] = Field(None, max_length=30, description="订单号，留空自动生成")
    customer_id: int
    items: List[SaleItemIn] = Field(..., min_length=1)
    status: str = Field(default="pending")
    tax_rate: float = Field(default=0, ge=0, description="税率（百分比）")
    discount_type: Optional[str] = None
    discount_value: float = Field(default=0, ge=0)
    payment_method: Optional[str] = None
    due_date: Optional[datetime] = None
    shipping_address: Optional[Address] = None
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    sales_rep_id: Optional[int] = None
    commission_rate: float = Field(default=0, ge=0, le=100, description="提成比例（百分比）")
    notes: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    order_date: Optional[datetime] = None

    @field_validator('status')
    @classmethod
    def check_status(cls, v: str) -> str:
        if v not in SALE_STATUSES:
            raise ValueError(f"状态必须是 {', '.join(SALE_STATUSES)} 之一")
        return v

    @field_validator('discount_type')
    @classmethod
    def check_discount_type(cls, v: Optional[str]) -> Optional[str]:
        return _check_discount_type(v)


class SaleUpdate(BaseModel):
    """更新销售订单，传入 items 时按明细ID比对并调整库存"""
    items: Optional[List[SaleItemIn]] = None
    status: Optional[str] = None
    tax_rate: Optional[float] = Field(None, ge=0)
    discount_type: Optional[str] = None
    discount_value: Optional[float] = Field(None, ge=0)
    payment_method: Optional[str] = None
    due_date: Optional[datetime] = None
    shipping_address: Optional[Address] = None
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    sales_rep_id: Optional[int] = None
    commission_rate: Optional[float] = Field(None, ge=0, le=100)
    notes: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None

    @field_validator('status')
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in SALE_STATUSES:
            raise ValueError(f"状态必须是 {', '.join(SALE_STATUSES)} 之一")
        return v

    @field_validator('discount_type')
    @classmethod
    def check_discount_type(cls, v: Optional[str]) -> Optional[str]:
        return _check_discount_type(v)


class PaymentIn(BaseModel):
    """登记收款/付款"""
    amount: float = Field(..., gt=0, description="本次金额")
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_date: Optional[datetime] = None


class SaleItemResponse(BaseModel):
    """订单明细响应"""
    id: int
    product_id: int
    location_id: Optional[int] = None
    product_name: Optional[str] = None
    product_sku: Optional[str] = None
    quantity: int
    unit_price: float
    subtotal: float
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class SaleResponse(BaseModel):
    """销售订单响应"""
    id: int
    order_number: str
    customer_id: int
    customer_code: Optional[str] = None
    customer_name: Optional[str] = None
    status: str
    subtotal: float = 0.0
    tax_rate: float = 0.0
    tax_amount: float = 0.0
    discount_type: Optional[str] = None
    discount_value: float = 0.0
    discount_amount: float = 0.0
    total: float = 0.0
    amount_paid: float = 0.0
    balance_due: float = 0.0
    payment_status: str
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    shipping_address: Optional[Dict[str, Any]] = None
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    sales_rep_id: Optional[int] = None
    commission_rate: float = 0.0
    commission_amount: float = 0.0
    notes: Optional[str] = None
    custom_fields: Dict[str, Any] = {}
    order_date: datetime
    created_at: datetime
    updated_at: datetime
    items: List[SaleItemResponse] = []


class SaleListResponse(BaseModel):
    """销售订单列表响应"""
    data: List[SaleResponse]
    total: int
    page: int
    limit: int
