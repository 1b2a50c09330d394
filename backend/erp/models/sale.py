"""
销售订单模型

金额关系：
- 明细小计 = 数量 × 单价
- 税额 = 小计 × 税率 / 100
- 折扣：percentage 按小计百分比，fixed 为固定金额
- 合计 = 小计 + 税额 - 折扣
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Sale(Base):
    """销售订单"""
    __tablename__ = "sales"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'order_number', name='uq_sale_tenant_order_number'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    # 单号格式：ORD00001
    order_number = Column(String(30), nullable=False, index=True, comment="订单号")
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True, comment="客户ID")
    customer_code = Column(String(30), comment="客户编码快照")

    # pending / processing / shipped / delivered / cancelled
    status = Column(String(20), nullable=False, default="pending", index=True, comment="订单状态")

    # 金额
    subtotal = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="小计")
    tax_rate = Column(DECIMAL(6, 2), default=Decimal("0.00"), comment="税率（百分比）")
    tax_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="税额")
    # percentage / fixed
    discount_type = Column(String(20), comment="折扣类型")
    discount_value = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="折扣值")
    discount_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="折扣金额")
    total = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="合计")

    # 收款
    amount_paid = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="已收金额")
    # unpaid / partial / paid
    payment_status = Column(String(20), nullable=False, default="unpaid", index=True, comment="收款状态")
    payment_method = Column(String(30), comment="收款方式")
    payment_reference = Column(String(100), comment="收款参考号")
    payment_date = Column(DateTime, comment="最近收款时间")
    due_date = Column(DateTime, comment="应收到期日")

    # 配送
    shipping_address = Column(JSON, comment="收货地址")
    shipping_method = Column(String(50), comment="配送方式")
    tracking_number = Column(String(100), comment="运单号")

    # 提成
    sales_rep_id = Column(Integer, ForeignKey("users.id"), index=True, comment="销售代表ID")
    commission_rate = Column(DECIMAL(6, 2), default=Decimal("0.00"), comment="提成比例（百分比）")
    commission_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="提成金额")

    notes = Column(Text, comment="备注")
    custom_fields = Column(JSON, default=dict, comment="自定义字段")

    # 业务日期，报表按此归集
    order_date = Column(DateTime, default=datetime.utcnow, index=True, comment="下单日期")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="sales")
    sales_rep = relationship("User")
    items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Sale {self.order_number}: {self.total}>"

    @property
    def balance_due(self) -> Decimal:
        return Decimal(str(self.total or 0)) - Decimal(str(self.amount_paid or 0))


class SaleItem(Base):
    """销售明细"""
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), comment="出库库位，为空时不扣库存")

    # 冗余保存，商品改名后订单仍显示下单时的信息
    product_name = Column(String(100), comment="品名快照")
    product_sku = Column(String(50), comment="SKU快照")

    quantity = Column(Integer, nullable=False, comment="数量")
    unit_price = Column(DECIMAL(12, 2), nullable=False, comment="单价")
    subtotal = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="小计")
    notes = Column(String(200), comment="备注")

    created_at = Column(DateTime, default=datetime.utcnow)

    sale = relationship("Sale", back_populates="items")
    product = relationship("Product")
    location = relationship("Location")

    def __repr__(self):
        return f"<SaleItem {self.product_id} x{self.quantity} @ {self.unit_price}>"
