"""
库存模型 - 每个库位每个商品一条库存记录，外加库存流水
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from erp.db.base import Base


class InventoryRecord(Base):
    """库位库存

    数量归零时记录被删除，因此不存在 quantity=0 的行
    """
    __tablename__ = "inventory_records"
    __table_args__ = (
        UniqueConstraint('product_id', 'location_id', name='uq_inventory_product_location'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=0, comment="库位数量")
    batch_number = Column(String(50), comment="批号")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", back_populates="inventory_records")
    location = relationship("Location", back_populates="inventory_records")

    def __repr__(self):
        return f"<InventoryRecord {self.product_id}@{self.location_id} = {self.quantity}>"


class InventoryTransaction(Base):
    """库存流水 - 记录每次库存变动，库存周转报表基于此计算"""
    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)

    # received: 采购入库
    # sold: 销售出库
    # returned: 销售退回
    # adjustment: 手动调整
    # transfer_in / transfer_out: 调拨
    transaction_type = Column(String(20), nullable=False, index=True, comment="流水类型")

    # 变动数量（正数增加，负数减少）
    quantity_change = Column(Integer, nullable=False, comment="变动数量")
    quantity_before = Column(Integer, nullable=False, comment="库位变动前数量")
    quantity_after = Column(Integer, nullable=False, comment="库位变动后数量")

    reference = Column(String(50), comment="关联单号")
    reason = Column(String(200), comment="变动原因")
    occurred_at = Column(DateTime, default=datetime.utcnow, index=True, comment="发生时间")

    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product")
    location = relationship("Location")

    def __repr__(self):
        return f"<InventoryTransaction {self.product_id}@{self.location_id}: {self.transaction_type} {self.quantity_change:+d}>"

    @property
    def type_display(self) -> str:
        type_map = {
            "received": "入库",
            "sold": "销售出库",
            "returned": "销售退回",
            "adjustment": "调整",
            "transfer_in": "调入",
            "transfer_out": "调出",
        }
        return type_map.get(self.transaction_type, self.transaction_type)
