"""
客户模型
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Customer(Base):
    """客户 - 批发买家"""
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_customer_tenant_code'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    # 基本信息
    code = Column(String(30), nullable=False, index=True, comment="客户编码，如 CUST001")
    name = Column(String(100), nullable=False, index=True, comment="公司名称")
    contact = Column(String(100), comment="联系人")
    email = Column(String(120), comment="邮箱")
    phone = Column(String(30), comment="电话")
    # {street, city, state, zip, country}
    address = Column(JSON, comment="地址")

    # active / inactive / pending
    status = Column(String(20), nullable=False, default="active", comment="状态")
    credit_limit = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="信用额度")
    payment_terms = Column(String(50), comment="账期，如 Net 30")
    segment = Column(String(30), comment="客户分层")
    notes = Column(Text, comment="备注")
    custom_fields = Column(JSON, default=dict, comment="自定义字段")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sales = relationship("Sale", back_populates="customer")

    def __repr__(self):
        return f"<Customer {self.code}: {self.name}>"
