"""
供应商模型
包含供应商本身、沟通记录和付款计划
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Vendor(Base):
    """供应商"""
    __tablename__ = "vendors"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_vendor_tenant_code'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    code = Column(String(30), nullable=False, index=True, comment="供应商编码，如 V0001")
    name = Column(String(100), nullable=False, index=True, comment="公司名称")
    contact = Column(String(100), comment="联系人")
    email = Column(String(120), comment="邮箱")
    phone = Column(String(30), comment="电话")
    address = Column(JSON, comment="地址")
    category = Column(String(50), index=True, comment="供应商分类")

    status = Column(String(20), nullable=False, default="active", comment="状态")
    payment_terms = Column(String(50), comment="账期")
    notes = Column(Text, comment="备注")
    custom_fields = Column(JSON, default=dict, comment="自定义字段")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = relationship("Product", back_populates="vendor")
    purchase_orders = relationship("PurchaseOrder", back_populates="vendor")
    communication_logs = relationship(
        "VendorCommunicationLog",
        back_populates="vendor",
        cascade="all, delete-orphan",
        order_by="VendorCommunicationLog.timestamp",
    )
    payment_schedules = relationship("VendorPaymentSchedule", back_populates="vendor", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Vendor {self.code}: {self.name}>"


class VendorCommunicationLog(Base):
    """供应商沟通记录"""
    __tablename__ = "vendor_communication_logs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)

    # outgoing: 我方发出  incoming: 供应商回复
    direction = Column(String(10), nullable=False, comment="方向")
    channel = Column(String(20), comment="渠道：email/phone/meeting")
    subject = Column(String(200), comment="主题")
    message = Column(Text, comment="内容")
    timestamp = Column(DateTime, default=datetime.utcnow, index=True, comment="沟通时间")

    created_at = Column(DateTime, default=datetime.utcnow)

    vendor = relationship("Vendor", back_populates="communication_logs")

    def __repr__(self):
        return f"<VendorCommunicationLog {self.vendor_id} {self.direction}>"


class VendorPaymentSchedule(Base):
    """供应商付款计划"""
    __tablename__ = "vendor_payment_schedules"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), index=True)

    amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="计划付款金额")
    payment_date = Column(DateTime, nullable=False, index=True, comment="计划付款日期")
    # scheduled / paid / overdue / cancelled
    status = Column(String(20), nullable=False, default="scheduled", comment="状态")
    notes = Column(Text, comment="备注")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor", back_populates="payment_schedules")
    purchase_order = relationship("PurchaseOrder")

    def __repr__(self):
        return f"<VendorPaymentSchedule {self.vendor_id}: {self.amount} @ {self.payment_date}>"
