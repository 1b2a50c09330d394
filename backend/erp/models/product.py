"""
商品与库位模型

商品上的 quantity 是各库位库存的冗余合计，只能通过库存服务变更
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, DECIMAL, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Product(Base):
    """商品"""
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'sku', name='uq_product_tenant_sku'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    sku = Column(String(50), nullable=False, index=True, comment="SKU，如 V0001-PROD001")
    name = Column(String(100), nullable=False, index=True, comment="品名")
    description = Column(Text, comment="描述")
    # indoor / outdoor / light dep / concentrate / vape / other
    category = Column(String(50), index=True, comment="分类")
    # indica / sativa / hybrid
    strain_type = Column(String(20), index=True, comment="品种类型")

    vendor_id = Column(Integer, ForeignKey("vendors.id"), index=True, comment="供应商ID")
    vendor_code = Column(String(30), comment="供应商编码快照")

    price = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="售价")
    cost_price = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="成本价")
    quantity = Column(Integer, nullable=False, default=0, comment="总库存（各库位合计）")
    unit = Column(String(20), default="lb", comment="计量单位")
    batch_number = Column(String(50), comment="批号")
    images = Column(JSON, default=list, comment="图片地址")
    notes = Column(Text, comment="备注")
    custom_fields = Column(JSON, default=dict, comment="自定义字段")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor", back_populates="products")
    inventory_records = relationship("InventoryRecord", back_populates="product")

    def __repr__(self):
        return f"<Product {self.sku}: {self.name} x{self.quantity}>"


class Location(Base):
    """库位 - 仓库、门店等存放地点"""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    name = Column(String(100), nullable=False, comment="名称")
    address = Column(JSON, comment="地址")
    is_active = Column(Boolean, default=True, comment="是否启用")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    inventory_records = relationship("InventoryRecord", back_populates="location")

    def __repr__(self):
        return f"<Location {self.id}: {self.name}>"
