"""客户Schema"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from datetime import datetime

from erp.schemas.common import Address


CUSTOMER_STATUSES = ("active", "inactive", "pending")


class CustomerBase(BaseModel):
    """客户基础字段"""
    name: str = Field(..., min_length=1, max_length=100, description="公司名称")
    contact: Optional[str] = Field(None, max_length=100, description="联系人")
    email: Optional[str] = Field(None, max_length=120, description="邮箱")
    phone: Optional[str] = Field(None, max_length=30, description="电话")
    address: Optional[Address] = None
    status: str = Field(default="active", description="状态：active/inactive/pending")
    credit_limit: float = Field(default=0, ge=0, description="信用额度")
    payment_terms: Optional[str] = Field(None, max_length=50, description="账期")
    segment: Optional[str] = Field(None, max_length=30, description="客户分层")
    notes: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict, description="自定义字段")

    @field_validator('status')
    @classmethod
    def check_status(cls, v: str) -> str:
        if v not in CUSTOMER_STATUSES:
            raise ValueError(f"状态必须是 {', '.join(CUSTOMER_STATUSES)} 之一")
        return v


class CustomerCreate(CustomerBase):
    """创建客户，编码留空时自动生成"""
    code: Optional[str] = Field(None, max_length=30, description="客户编码")


class CustomerUpdate(BaseModel):
    """更新客户"""
    code: Optional[str] = Field(None, min_length=1, max_length=30)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    contact: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Address] = None
    status: Optional[str] = None
    credit_limit: Optional[float] = Field(None, ge=0)
    payment_terms: Optional[str] = None
    segment: Optional[str] = None
    notes: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None

    @field_validator('status')
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in CUSTOMER_STATUSES:
            raise ValueError(f"状态必须是 {', '.join(CUSTOMER_STATUSES)} 之一")
        return v


class CustomerResponse(CustomerBase):
    """客户响应"""
    id: int
    code: str
    created_at: datetime
    updated_at: datetime

    @field_validator('credit_limit', mode='before')
    @classmethod
    def fix_null_credit(cls, v: Any) -> float:
        return float(v) if v is not None else 0.0

    @field_validator('custom_fields', mode='before')
    @classmethod
    def fix_null_custom_fields(cls, v: Any) -> Dict[str, Any]:
        return v or {}

    class Config:
        from_attributes = True


class CustomerListResponse(BaseModel):
    """客户列表响应"""
    data: List[CustomerResponse]
    total: int
    page: int
    limit: int


class CustomerMetrics(BaseModel):
    """客户指标"""
    total_sales: float = 0.0
    order_count: int = 0
    average_order_value: float = 0.0
    last_order_date: Optional[datetime] = None
    days_since_last_order: Optional[int] = None
    payment_reliability: float = 0.0


class CustomerSegmentItem(BaseModel):
    """分层结果中的单个客户"""
    customer_id: int
    code: str
    name: str
    metrics: CustomerMetrics


class CustomerSegmentsResponse(BaseModel):
    """客户分层"""
    premium: List[CustomerSegmentItem] = []
    standard: List[CustomerSegmentItem] = []
    new: List[CustomerSegmentItem] = []
    inactive: List[CustomerSegmentItem] = []


class CreditRecommendation(BaseModel):
    """信用额度建议"""
    customer_id: int
    current_credit_limit: float
    recommended_credit_limit: float
    metrics: CustomerMetrics
