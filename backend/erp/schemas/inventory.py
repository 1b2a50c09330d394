"""库存Schema"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime


class InventoryChange(BaseModel):
    """入库/出库请求（数量校验在服务层完成，返回400）"""
    product_id: int
    location_id: int
    quantity: int = Field(..., description="数量，必须大于0")
    batch_number: Optional[str] = Field(None, max_length=50, description="批号（仅入库）")
    reference: Optional[str] = Field(None, max_length=50, description="关联单号")
    reason: Optional[str] = Field(None, max_length=200, description="原因")


class InventoryTransfer(BaseModel):
    """调拨请求"""
    product_id: int
    from_location_id: int
    to_location_id: int
    quantity: int = Field(..., description="数量，必须大于0")
    reason: Optional[str] = Field(None, max_length=200)


class TransferResult(BaseModel):
    """调拨结果"""
    success: bool
    product_id: int
    from_location_id: int
    to_location_id: int
    quantity: int


class InventoryRecordResponse(BaseModel):
    """库位库存响应"""
    id: int
    product_id: int
    location_id: int
    quantity: int
    batch_number: Optional[str] = None
    product_name: Optional[str] = None
    product_sku: Optional[str] = None
    location_name: Optional[str] = None
    updated_at: Optional[datetime] = None


class InventoryTransactionResponse(BaseModel):
    """库存流水响应"""
    id: int
    product_id: int
    location_id: int
    transaction_type: str
    type_display: str = ""
    quantity_change: int
    quantity_before: int
    quantity_after: int
    reference: Optional[str] = None
    reason: Optional[str] = None
    occurred_at: datetime
    product_name: Optional[str] = None
    location_name: Optional[str] = None


class InventoryTransactionListResponse(BaseModel):
    """库存流水列表响应"""
    data: List[InventoryTransactionResponse]
    total: int
    page: int
    limit: int


class InventoryChangeResult(BaseModel):
    """入库/出库结果"""
    product_id: int
    location_id: int
    location_quantity: int = Field(..., description="库位剩余数量")
    product_quantity: int = Field(..., description="商品总库存")
    batch_number: Optional[str] = None
