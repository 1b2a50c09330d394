"""
报表模型 - 保存的报表定义及其执行记录
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from erp.db.base import Base


class ReportDefinition(Base):
    """报表定义"""
    __tablename__ = "report_definitions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    name = Column(String(100), nullable=False, comment="报表名称")
    description = Column(Text, comment="描述")
    # sales_performance / inventory_turnover / customer_behavior / financial / custom
    report_type = Column(String(30), nullable=False, index=True, comment="报表类型")
    default_parameters = Column(JSON, default=dict, comment="默认参数")
    required_parameters = Column(JSON, default=list, comment="必填参数名")
    is_active = Column(Boolean, default=True, comment="是否启用")

    created_by = Column(Integer, ForeignKey("users.id"), comment="创建人")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    executions = relationship(
        "ReportExecution",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportExecution.started_at.desc()",
    )

    def __repr__(self):
        return f"<ReportDefinition {self.id}: {self.name} ({self.report_type})>"


class ReportExecution(Base):
    """报表执行记录"""
    __tablename__ = "report_executions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    report_id = Column(Integer, ForeignKey("report_definitions.id", ondelete="CASCADE"), nullable=False, index=True)

    parameter_values = Column(JSON, default=dict, comment="合并后的执行参数")
    output_format = Column(String(10), default="json", comment="输出格式")
    # running / completed / failed
    status = Column(String(20), nullable=False, default="running", comment="执行状态")
    row_count = Column(Integer, default=0, comment="结果行数")
    error_message = Column(Text, comment="失败原因")

    started_at = Column(DateTime, default=datetime.utcnow, comment="开始时间")
    finished_at = Column(DateTime, comment="结束时间")

    report = relationship("ReportDefinition", back_populates="executions")

    def __repr__(self):
        return f"<ReportExecution {self.id} report={self.report_id} {self.status}>"
