"""
采购订单模型
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, DECIMAL, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from erp.db.base import Base


class PurchaseOrder(Base):
    """采购订单"""
    __tablename__ = "purchase_orders"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'po_number', name='uq_po_tenant_po_number'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    # 单号格式：PO00001
    po_number = Column(String(30), nullable=False, index=True, comment="采购单号")
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True, comment="供应商ID")
    vendor_code = Column(String(30), comment="供应商编码快照")

    # draft: 草稿
    # submitted: 已下单
    # partial: 部分收货
    # received: 全部收货
    # completed: 已完结
    # cancelled: 已取消
    status = Column(String(20), nullable=False, default="draft", index=True, comment="状态")

    subtotal = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="小计")
    tax_rate = Column(DECIMAL(6, 2), default=Decimal("0.00"), comment="税率（百分比）")
    tax_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="税额")
    discount_type = Column(String(20), comment="折扣类型")
    discount_value = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="折扣值")
    discount_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="折扣金额")
    total = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="合计")

    amount_paid = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="已付金额")
    # unpaid / partial / paid
    payment_status = Column(String(20), nullable=False, default="unpaid", comment="付款状态")
    payment_terms = Column(String(50), comment="账期")
    payment_method = Column(String(30), comment="付款方式")
    payment_reference = Column(String(100), comment="付款参考号")
    payment_date = Column(DateTime, comment="最近付款时间")
    delivery_address = Column(JSON, comment="收货地址")

    order_date = Column(DateTime, default=datetime.utcnow, index=True, comment="下单日期")
    expected_delivery_date = Column(DateTime, comment="预计到货日期")
    actual_delivery_date = Column(DateTime, comment="实际到货日期（全部收货时记录）")

    has_quality_issues = Column(Boolean, default=False, comment="是否有质量问题")
    quality_notes = Column(Text, comment="质量问题说明")
    notes = Column(Text, comment="备注")
    custom_fields = Column(JSON, default=dict, comment="自定义字段")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor", back_populates="purchase_orders")
    items = relationship("PurchaseOrderItem", back_populates="purchase_order", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<PurchaseOrder {self.po_number}: {self.status}>"

    @property
    def is_fully_received(self) -> bool:
        return bool(self.items) and all(item.is_fully_received for item in self.items)


class PurchaseOrderItem(Base):
    """采购明细"""
    __tablename__ = "purchase_order_items"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(
        Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    product_name = Column(String(100), comment="品名快照")
    product_sku = Column(String(50), comment="SKU快照")

    quantity = Column(Integer, nullable=False, comment="采购数量")
    unit_price = Column(DECIMAL(12, 2), nullable=False, comment="单价")
    subtotal = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="小计")
    received_quantity = Column(Integer, nullable=False, default=0, comment="已收数量")

    created_at = Column(DateTime, default=datetime.utcnow)

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    product = relationship("Product")

    def __repr__(self):
        return f"<PurchaseOrderItem {self.product_id} {self.received_quantity}/{self.quantity}>"

    @property
    def is_fully_received(self) -> bool:
        return (self.received_quantity or 0) >= self.quantity
