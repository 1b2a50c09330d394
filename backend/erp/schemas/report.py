"""报表Schema"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from datetime import datetime


REPORT_TYPES = ("sales_performance", "inventory_turnover", "customer_behavior", "financial", "custom")
GROUP_BY_OPTIONS = ("day", "week", "month", "quarter", "year")


class ReportFilter(BaseModel):
    """自定义报表过滤条件"""
    field: str
    operator: str = Field(..., description="equals/not_equals/greater_than/less_than/contains/not_contains/in/not_in")
    value: Any = None


class ReportParameters(BaseModel):
    """报表参数（各类报表按需取用）"""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    group_by: str = "month"
    customer_ids: Optional[List[int]] = None
    product_ids: Optional[List[int]] = None
    location_ids: Optional[List[int]] = None
    categories: Optional[List[str]] = None
    segments: Optional[List[str]] = None
    # 自定义报表
    metrics: List[str] = Field(default_factory=list)
    dimensions: List[str] = Field(default_factory=list)
    filters: List[ReportFilter] = Field(default_factory=list)


class ReportDefinitionBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    report_type: str
    default_parameters: Dict[str, Any] = Field(default_factory=dict)
    required_parameters: List[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator('report_type')
    @classmethod
    def check_report_type(cls, v: str) -> str:
        if v not in REPORT_TYPES:
            raise ValueError(f"报表类型必须是 {', '.join(REPORT_TYPES)} 之一")
        return v


class ReportDefinitionCreate(ReportDefinitionBase):
    """创建报表定义"""
    created_by: Optional[int] = None


class ReportDefinitionUpdate(BaseModel):
    """更新报表定义"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    report_type: Optional[str] = None
    default_parameters: Optional[Dict[str, Any]] = None
    required_parameters: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator('report_type')
    @classmethod
    def check_report_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in REPORT_TYPES:
            raise ValueError(f"报表类型必须是 {', '.join(REPORT_TYPES)} 之一")
        return v


class ReportDefinitionResponse(ReportDefinitionBase):
    """报表定义响应"""
    id: int
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    @field_validator('default_parameters', mode='before')
    @classmethod
    def fix_null_defaults(cls, v: Any) -> Dict[str, Any]:
        return v or {}

    @field_validator('required_parameters', mode='before')
    @classmethod
    def fix_null_required(cls, v: Any) -> List[str]:
        return v or []

    class Config:
        from_attributes = True


class ReportExecuteRequest(BaseModel):
    """执行报表"""
    parameters: Dict[str, Any] = Field(default_factory=dict)
    format: str = Field(default="json", description="json/csv/xlsx")

    @field_validator('format')
    @classmethod
    def check_format(cls, v: str) -> str:
        if v not in ("json", "csv", "xlsx"):
            raise ValueError("输出格式必须是 json、csv 或 xlsx")
        return v


class ReportExecutionResponse(BaseModel):
    """报表执行记录"""
    id: int
    report_id: int
    status: str
    parameter_values: Dict[str, Any] = {}
    output_format: str = "json"
    row_count: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @field_validator('parameter_values', mode='before')
    @classmethod
    def fix_null_params(cls, v: Any) -> Dict[str, Any]:
        return v or {}

    class Config:
        from_attributes = True


class ReportExecuteResult(BaseModel):
    """报表执行结果（JSON格式）"""
    execution: ReportExecutionResponse
    result: Dict[str, Any]


# ==================== 经营概览 ====================

class RecentSale(BaseModel):
    """最近订单"""
    id: int
    order_number: str
    customer_name: Optional[str] = None
    total: float
    status: str
    payment_status: str
    order_date: datetime


class TrendPoint(BaseModel):
    """趋势数据点"""
    date: str
    count: int = 0
    amount: float = 0.0


class OverviewResponse(BaseModel):
    """经营概览"""
    today_sales_amount: float = 0.0
    today_sales_count: int = 0
    month_sales_amount: float = 0.0
    month_sales_count: int = 0
    month_purchase_amount: float = 0.0
    customer_count: int = 0
    product_count: int = 0
    low_inventory_count: int = 0
    accounts_receivable: float = 0.0
    accounts_payable: float = 0.0
    recent_sales: List[RecentSale] = []
    sales_trend: List[TrendPoint] = []
