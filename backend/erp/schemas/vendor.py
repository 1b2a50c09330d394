"""供应商与采购Schema"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from datetime import datetime

from erp.schemas.common import Address
from erp.schemas.sale import DISCOUNT_TYPES


PO_STATUSES = ("draft", "submitted", "partial", "received", "completed", "cancelled")
SCHEDULE_STATUSES = ("scheduled", "paid", "overdue", "cancelled")


class VendorBase(BaseModel):
    """供应商基础字段"""
    name: str = Field(..., min_length=1, max_length=100, description="公司名称")
    contact: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=120)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[Address] = None
    category: Optional[str] = Field(None, max_length=50, description="供应商分类")
    status: str = Field(default="active", max_length=20)
    payment_terms: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)


class VendorCreate(VendorBase):
    """创建供应商，编码留空自动生成"""
    code: Optional[str] = Field(None, max_length=30)


class VendorUpdate(BaseModel):
    """更新供应商"""
    code: Optional[str] = Field(None, min_length=1, max_length=30)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    contact: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Address] = None
    category: Optional[str] = None
    status: Optional[str] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None


class VendorResponse(VendorBase):
    """供应商响应"""
    id: int
    code: str
    created_at: datetime
    updated_at: datetime

    @field_validator('custom_fields', mode='before')
    @classmethod
    def fix_null_custom_fields(cls, v: Any) -> Dict[str, Any]:
        return v or {}

    class Config:
        from_attributes = True


class VendorListResponse(BaseModel):
    """供应商列表响应"""
    data: List[VendorResponse]
    total: int
    page: int
    limit: int


class VendorPerformance(BaseModel):
    """供应商绩效"""
    vendor_id: int
    total_orders: int = 0
    total_spent: float = 0.0
    on_time_delivery_rate: float = 0.0
    order_fulfillment_rate: float = 0.0
    quality_issue_rate: float = 0.0
    average_response_time_hours: Optional[float] = None
    last_order_date: Optional[datetime] = None


# ==================== 沟通记录 ====================

class CommunicationLogCreate(BaseModel):
    """新增沟通记录"""
    direction: str = Field(..., description="incoming/outgoing")
    channel: Optional[str] = Field(None, max_length=20)
    subject: Optional[str] = Field(None, max_length=200)
    message: Optional[str] = None
    timestamp: Optional[datetime] = None

    @field_validator('direction')
    @classmethod
    def check_direction(cls, v: str) -> str:
        if v not in ("incoming", "outgoing"):
            raise ValueError("方向必须是 incoming 或 outgoing")
        return v


class CommunicationLogResponse(BaseModel):
    """沟通记录响应"""
    id: int
    vendor_id: int
    direction: str
    channel: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


# ==================== 付款计划 ====================

class PaymentScheduleCreate(BaseModel):
    """新增付款计划"""
    purchase_order_id: Optional[int] = None
    amount: float = Field(..., gt=0)
    payment_date: datetime
    status: str = Field(default="scheduled")
    notes: Optional[str] = None

    @field_validator('status')
    @classmethod
    def check_status(cls, v: str) -> str:
        if v not in SCHEDULE_STATUSES:
            raise ValueError(f"状态必须是 {', '.join(SCHEDULE_STATUSES)} 之一")
        return v


class PaymentScheduleUpdate(BaseModel):
    """更新付款计划"""
    amount: Optional[float] = Field(None, gt=0)
    payment_date: Optional[datetime] = None
    status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('status')
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in SCHEDULE_STATUSES:
            raise ValueError(f"状态必须是 {', '.join(SCHEDULE_STATUSES)} 之一")
        return v


class PaymentScheduleResponse(BaseModel):
    """付款计划响应"""
    id: int
    vendor_id: int
    purchase_order_id: Optional[int] = None
    amount: float
    payment_date: datetime
    status: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ==================== 采购订单 ====================

class PurchaseOrderItemIn(BaseModel):
    """采购明细"""
    id: Optional[int] = None
    product_id: int
    quantity: int = Field(..., gt=0)
    unit_price: Optional[float] = Field(None, ge=0, description="单价，留空取商品成本价")


class PurchaseOrderCreate(BaseModel):
    """创建采购订单"""
    po_number: Optional[str] = Field(None, max_length=30)
    vendor_id: int
    items: List[PurchaseOrderItemIn] = Field(..., min_length=1)
    status: str = Field(default="draft")
    tax_rate: float = Field(default=0, ge=0)
    discount_type: Optional[str] = None
    discount_value: float = Field(default=0, ge=0)
    payment_terms: Optional[str] = None
    delivery_address: Optional[Address] = None
    order_date: Optional[datetime] = None
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('status')
    @classmethod
    def check_status(cls, v: str) -> str:
        if v not in PO_STATUSES:
            raise ValueError(f"状态必须是 {', '.join(PO_STATUSES)} 之一")
        return v

    @field_validator('discount_type')
    @classmethod
    def check_discount_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in DISCOUNT_TYPES:
            raise ValueError("折扣类型必须是 percentage 或 fixed")
        return v


class PurchaseOrderUpdate(BaseModel):
    """更新采购订单"""
    items: Optional[List[PurchaseOrderItemIn]] = None
    status: Optional[str] = None
    tax_rate: Optional[float] = Field(None, ge=0)
    discount_type: Optional[str] = None
    discount_value: Optional[float] = Field(None, ge=0)
    payment_terms: Optional[str] = None
    delivery_address: Optional[Address] = None
    expected_delivery_date: Optional[datetime] = None
    has_quality_issues: Optional[bool] = None
    quality_notes: Optional[str] = None
    notes: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None

    @field_validator('status')
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in PO_STATUSES:
            raise ValueError(f"状态必须是 {', '.join(PO_STATUSES)} 之一")
        return v


class ReceiveItem(BaseModel):
    """收货明细"""
    item_id: int
    quantity: int = Field(..., gt=0)
    location_id: Optional[int] = Field(None, description="入库库位，留空只登记收货数量")
    batch_number: Optional[str] = Field(None, max_length=50)


class ReceiveItemsRequest(BaseModel):
    """收货请求"""
    items: List[ReceiveItem] = Field(..., min_length=1)
    has_quality_issues: Optional[bool] = None
    quality_notes: Optional[str] = None


class PurchaseOrderItemResponse(BaseModel):
    """采购明细响应"""
    id: int
    product_id: int
    product_name: Optional[str] = None
    product_sku: Optional[str] = None
    quantity: int
    unit_price: float
    subtotal: float
    received_quantity: int = 0
    is_fully_received: bool = False

    class Config:
        from_attributes = True


class PurchaseOrderResponse(BaseModel):
    """采购订单响应"""
    id: int
    po_number: str
    vendor_id: int
    vendor_code: Optional[str] = None
    vendor_name: Optional[str] = None
    status: str
    subtotal: float = 0.0
    tax_rate: float = 0.0
    tax_amount: float = 0.0
    discount_type: Optional[str] = None
    discount_value: float = 0.0
    discount_amount: float = 0.0
    total: float = 0.0
    amount_paid: float = 0.0
    payment_status: str
    payment_terms: Optional[str] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_date: Optional[datetime] = None
    delivery_address: Optional[Dict[str, Any]] = None
    order_date: datetime
    expected_delivery_date: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    has_quality_issues: bool = False
    quality_notes: Optional[str] = None
    notes: Optional[str] = None
    custom_fields: Dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime
    items: List[PurchaseOrderItemResponse] = []


class PurchaseOrderListResponse(BaseModel):
    """采购订单列表响应"""
    data: List[PurchaseOrderResponse]
    total: int
    page: int
    limit: int
