"""仪表盘Schema"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from datetime import datetime


class WidgetBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="组件名称")
    widget_type: str = Field(..., max_length=30, description="组件类型")
    data_source: Optional[str] = Field(None, max_length=50)
    config: Dict[str, Any] = Field(default_factory=dict)
    position_x: int = Field(default=0, ge=0)
    position_y: int = Field(default=0, ge=0)
    width: int = Field(default=4, ge=1)
    height: int = Field(default=3, ge=1)


class WidgetCreate(WidgetBase):
    """新增组件"""
    pass


class WidgetUpdate(BaseModel):
    """更新组件"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    widget_type: Optional[str] = None
    data_source: Optional[str] = None
    config: Optional[Dict[str, Any]] = None
    position_x: Optional[int] = Field(None, ge=0)
    position_y: Optional[int] = Field(None, ge=0)
    width: Optional[int] = Field(None, ge=1)
    height: Optional[int] = Field(None, ge=1)


class WidgetResponse(WidgetBase):
    """组件响应"""
    id: int
    dashboard_id: int

    @field_validator('config', mode='before')
    @classmethod
    def fix_null_config(cls, v: Any) -> Dict[str, Any]:
        return v or {}

    class Config:
        from_attributes = True


class DashboardCreate(BaseModel):
    """创建仪表盘（可同时创建组件）"""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    layout: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False
    is_system: bool = False
    created_by: Optional[int] = None
    widgets: List[WidgetCreate] = Field(default_factory=list)


class DashboardUpdate(BaseModel):
    """更新仪表盘，传入 widgets 时整体替换组件"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    layout: Optional[Dict[str, Any]] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None
    widgets: Optional[List[WidgetCreate]] = None


class DashboardResponse(BaseModel):
    """仪表盘响应"""
    id: int
    name: str
    description: Optional[str] = None
    layout: Dict[str, Any] = {}
    is_default: bool = False
    is_system: bool = False
    is_active: bool = True
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    widgets: List[WidgetResponse] = []

    @field_validator('layout', mode='before')
    @classmethod
    def fix_null_layout(cls, v: Any) -> Dict[str, Any]:
        return v or {}

    class Config:
        from_attributes = True
