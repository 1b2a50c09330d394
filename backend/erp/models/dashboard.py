"""
仪表盘模型
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Dashboard(Base):
    """仪表盘"""
    __tablename__ = "dashboards"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    name = Column(String(100), nullable=False, comment="名称")
    description = Column(Text, comment="描述")
    layout = Column(JSON, default=dict, comment="布局配置")
    is_default = Column(Boolean, default=False, comment="是否默认")
    # 系统仪表盘不可删除，列表默认不返回
    is_system = Column(Boolean, default=False, comment="是否系统内置")
    is_active = Column(Boolean, default=True, comment="是否启用")

    created_by = Column(Integer, ForeignKey("users.id"), comment="创建人")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    widgets = relationship(
        "DashboardWidget",
        back_populates="dashboard",
        cascade="all, delete-orphan",
        order_by=lambda: [DashboardWidget.position_y, DashboardWidget.position_x],
    )

    def __repr__(self):
        return f"<Dashboard {self.id}: {self.name}>"


class DashboardWidget(Base):
    """仪表盘组件"""
    __tablename__ = "dashboard_widgets"

    id = Column(Integer, primary_key=True, index=True)
    dashboard_id = Column(Integer, ForeignKey("dashboards.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(100), nullable=False, comment="组件名称")
    # chart / kpi / table ...
    widget_type = Column(String(30), nullable=False, comment="组件类型")
    data_source = Column(String(50), comment="数据来源")
    config = Column(JSON, default=dict, comment="组件配置")
    position_x = Column(Integer, default=0, comment="横向位置")
    position_y = Column(Integer, default=0, comment="纵向位置")
    width = Column(Integer, default=4, comment="宽度")
    height = Column(Integer, default=3, comment="高度")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    dashboard = relationship("Dashboard", back_populates="widgets")

    def __repr__(self):
        return f"<DashboardWidget {self.id}: {self.name}>"
