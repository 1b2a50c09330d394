"""商品与库位Schema"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from datetime import datetime

from erp.schemas.common import Address


class ProductBase(BaseModel):
    """商品基础字段"""
    name: str = Field(..., min_length=1, max_length=100, description="品名")
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50, description="分类")
    strain_type: Optional[str] = Field(None, max_length=20, description="品种类型")
    vendor_id: Optional[int] = Field(None, description="供应商ID")
    price: float = Field(default=0, ge=0, description="售价")
    cost_price: float = Field(default=0, ge=0, description="成本价")
    unit: str = Field(default="lb", max_length=20, description="计量单位")
    batch_number: Optional[str] = Field(None, max_length=50, description="批号")
    images: List[str] = Field(default_factory=list, description="图片地址")
    notes: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)


class ProductCreate(ProductBase):
    """创建商品

    sku 留空时自动生成；提供 initial_quantity 和 location_id 时同时入库
    """
    sku: Optional[str] = Field(None, max_length=50, description="SKU")
    initial_quantity: Optional[int] = Field(None, gt=0, description="初始库存")
    location_id: Optional[int] = Field(None, description="初始库存库位")


class ProductUpdate(BaseModel):
    """更新商品（库存数量只能通过库存接口变更）"""
    sku: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = None
    strain_type: Optional[str] = None
    vendor_id: Optional[int] = None
    price: Optional[float] = Field(None, ge=0)
    cost_price: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = None
    batch_number: Optional[str] = None
    images: Optional[List[str]] = None
    notes: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None


class ProductResponse(ProductBase):
    """商品响应"""
    id: int
    sku: str
    vendor_code: Optional[str] = None
    quantity: int = 0
    created_at: datetime
    updated_at: datetime

    @field_validator('price', 'cost_price', mode='before')
    @classmethod
    def fix_null_amount(cls, v: Any) -> float:
        return float(v) if v is not None else 0.0

    @field_validator('images', mode='before')
    @classmethod
    def fix_null_images(cls, v: Any) -> List[str]:
        return v or []

    @field_validator('custom_fields', mode='before')
    @classmethod
    def fix_null_custom_fields(cls, v: Any) -> Dict[str, Any]:
        return v or {}

    class Config:
        from_attributes = True


class ProductListResponse(BaseModel):
    """商品列表响应"""
    data: List[ProductResponse]
    total: int
    page: int
    limit: int


class LocationBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="名称")
    address: Optional[Address] = None
    is_active: bool = True


class LocationCreate(LocationBase):
    """创建库位"""
    pass


class LocationUpdate(BaseModel):
    """更新库位"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[Address] = None
    is_active: Optional[bool] = None


class LocationResponse(LocationBase):
    """库位响应"""
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
