"""租户与用户Schema"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from datetime import datetime


USER_ROLES = ("admin", "manager", "sales", "user")


class TenantBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="租户名称")
    domain: Optional[str] = Field(None, max_length=100, description="自定义域名")
    plan: str = Field(default="standard", max_length=30, description="订阅套餐")
    settings: Dict[str, Any] = Field(default_factory=dict, description="租户配置")
    is_active: bool = Field(default=True, description="是否启用")


class TenantCreate(TenantBase):
    """创建租户"""
    pass


class TenantUpdate(BaseModel):
    """更新租户"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    domain: Optional[str] = None
    plan: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class TenantResponse(TenantBase):
    """租户响应"""
    id: int
    created_at: datetime
    updated_at: datetime

    @field_validator('settings', mode='before')
    @classmethod
    def fix_null_settings(cls, v: Any) -> Dict[str, Any]:
        return v or {}

    class Config:
        from_attributes = True


class UserBase(BaseModel):
    email: str = Field(..., min_length=3, max_length=120, description="邮箱")
    first_name: Optional[str] = Field(None, max_length=50, description="名")
    last_name: Optional[str] = Field(None, max_length=50, description="姓")
    role: str = Field(default="user", description="角色：admin/manager/sales/user")
    is_active: bool = Field(default=True, description="是否启用")

    @field_validator('email')
    @classmethod
    def check_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError("邮箱格式不正确")
        return v.strip().lower()

    @field_validator('role')
    @classmethod
    def check_role(cls, v: str) -> str:
        if v not in USER_ROLES:
            raise ValueError(f"角色必须是 {', '.join(USER_ROLES)} 之一")
        return v


class UserCreate(UserBase):
    """创建用户，未指定权限时使用角色默认权限"""
    permissions: Optional[List[str]] = None


class UserUpdate(BaseModel):
    """更新用户"""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    permissions: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator('role')
    @classmethod
    def check_role(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in USER_ROLES:
            raise ValueError(f"角色必须是 {', '.join(USER_ROLES)} 之一")
        return v


class UserResponse(UserBase):
    """用户响应"""
    id: int
    tenant_id: int
    full_name: str = ""
    permissions: List[str] = []
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator('permissions', mode='before')
    @classmethod
    def fix_null_permissions(cls, v: Any) -> List[str]:
        return v or []

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    """用户列表响应"""
    data: List[UserResponse]
    total: int
    page: int
    limit: int
