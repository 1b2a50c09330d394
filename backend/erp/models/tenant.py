"""
租户与用户模型
每个租户是一家独立经营的批发商，业务数据按 tenant_id 隔离
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Tenant(Base):
    """租户"""
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, comment="租户名称")
    domain = Column(String(100), unique=True, comment="自定义域名")
    plan = Column(String(30), default="standard", comment="订阅套餐")
    settings = Column(JSON, default=dict, comment="租户配置（币种、日期格式等）")
    is_active = Column(Boolean, default=True, comment="是否启用")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Tenant {self.id}: {self.name}>"


class User(Base):
    """用户 - 只保存资料和角色，登录认证不在本系统内"""
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'email', name='uq_user_tenant_email'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    email = Column(String(120), nullable=False, index=True, comment="邮箱")
    first_name = Column(String(50), comment="名")
    last_name = Column(String(50), comment="姓")
    # admin / manager / sales / user
    role = Column(String(20), nullable=False, default="user", comment="角色")
    permissions = Column(JSON, default=list, comment="权限列表")
    is_active = Column(Boolean, default=True, comment="是否启用")
    last_login = Column(DateTime, comment="最后登录时间")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="users")

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else self.email
