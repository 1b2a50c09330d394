"""报表API - 经营概览、分析报表、导出、报表定义与执行记录"""

import io
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import Response, StreamingResponse
from pydantic import ValidationError
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.deps import get_db, get_tenant_id
from erp.models import Sale, PurchaseOrder, Customer, Product, ReportDefinition, ReportExecution
from erp.schemas.common import MessageResponse
from erp.schemas.report import (
    REPORT_TYPES, ReportParameters,
    ReportDefinitionCreate, ReportDefinitionUpdate, ReportDefinitionResponse,
    ReportExecuteRequest, ReportExecutionResponse, ReportExecuteResult,
    OverviewResponse, RecentSale, TrendPoint
)
from erp.services.inventory import count_low_inventory_products
from erp.services.reports import (
    ReportError, run_report, count_report_rows, export_report_to_csv, export_report_to_excel
)

logger = logging.getLogger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def _generate(db: AsyncSession, tenant_id: int, report_type: str, params: ReportParameters) -> Dict[str, Any]:
    try:
        return await run_report(db, tenant_id, report_type, params.model_dump())
    except ReportError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _file_response(report: Dict[str, Any], fmt: str, filename: str) -> Any:
    """将报表结果导出为 CSV 或 Excel 下载"""
    try:
        if fmt == "csv":
            return Response(
                content=export_report_to_csv(report),
                media_type="text/csv",
                headers={"Content-Disposition": f'attachment; filename="{filename}.csv"'}
            )
        content = export_report_to_excel(report, title=filename)
    except ReportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return StreamingResponse(
        io.BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}.xlsx"'}
    )


# ==================== 经营概览 ====================

@router.get("/overview", response_model=OverviewResponse)
async def get_overview(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
) -> Any:
    """经营概览：今日/本月销售、应收应付、低库存、最近订单、近7天趋势"""
    now = datetime.utcnow()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    async def sales_since(start: datetime):
        row = (await db.execute(
            select(
                func.coalesce(func.sum(Sale.total), 0),
                func.count(Sale.id)
            ).where(
                Sale.tenant_id == tenant_id,
                Sale.status != "cancelled",
                Sale.order_date >= start
            )
        )).first()
        return (float(row[0]), int(row[1])) if row else (0.0, 0)

    today_amount, today_count = await sales_since(today_start)
    month_amount, month_count = await sales_since(month_start)

    month_purchase = (await db.execute(
        select(func.coalesce(func.sum(PurchaseOrder.total), 0)).where(
            PurchaseOrder.tenant_id == tenant_id,
            PurchaseOrder.status != "cancelled",
            PurchaseOrder.order_date >= month_start
        )
    )).scalar()

    # 应收 / 应付：未结清订单的 合计 - 已付
    receivable = (await db.execute(
        select(func.coalesce(func.sum(Sale.total - func.coalesce(Sale.amount_paid, 0)), 0)).where(
            Sale.tenant_id == tenant_id,
            Sale.payment_status != "paid",
            Sale.status != "cancelled"
        )
    )).scalar()
    payable = (await db.execute(
        select(func.coalesce(func.sum(PurchaseOrder.total - func.coalesce(PurchaseOrder.amount_paid, 0)), 0)).where(
            PurchaseOrder.tenant_id == tenant_id,
            PurchaseOrder.payment_status != "paid",
            PurchaseOrder.status != "cancelled"
        )
    )).scalar()

    customer_count = (await db.execute(
        select(func.count(Customer.id)).where(Customer.tenant_id == tenant_id)
    )).scalar() or 0
    product_count = (await db.execute(
        select(func.count(Product.id)).where(Product.tenant_id == tenant_id)
    )).scalar() or 0

    recent = (await db.execute(
        select(Sale).options(selectinload(Sale.customer))
        .where(Sale.tenant_id == tenant_id)
        .order_by(Sale.order_date.desc())
        .limit(5)
    )).scalars().all()
    recent_sales = [
        RecentSale(
            id=s.id,
            order_number=s.order_number,
            customer_name=s.customer.name if s.customer else None,
            total=float(s.total or 0),
            status=s.status,
            payment_status=s.payment_status,
            order_date=s.order_date,
        )
        for s in recent
    ]

    # 近7天销售趋势
    sales_trend = []
    for i in range(6, -1, -1):
        day_start = today_start - timedelta(days=i)
        day_end = day_start + timedelta(days=1)
        row = (await db.execute(
            select(
                func.coalesce(func.sum(Sale.total), 0),
                func.count(Sale.id)
            ).where(
                Sale.tenant_id == tenant_id,
                Sale.status != "cancelled",
                Sale.order_date >= day_start,
                Sale.order_date < day_end
            )
        )).first()
        sales_trend.append(TrendPoint(
            date=day_start.strftime("%Y-%m-%d"),
            amount=float(row[0]) if row else 0,
            count=int(row[1]) if row else 0,
        ))

    return OverviewResponse(
        today_sales_amount=round(today_amount, 2),
        today_sales_count=today_count,
        month_sales_amount=round(month_amount, 2),
        month_sales_count=month_count,
        month_purchase_amount=round(float(month_purchase or 0), 2),
        customer_count=customer_count,
        product_count=product_count,
        low_inventory_count=await count_low_inventory_products(db, tenant_id),
        accounts_receivable=round(float(receivable or 0), 2),
        accounts_payable=round(float(payable or 0), 2),
        recent_sales=recent_sales,
        sales_trend=sales_trend,
    )


# ==================== 分析报表 ====================

@router.post("/sales-performance")
async def sales_performance_report(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    params: ReportParameters,
) -> Any:
    """销售业绩报表"""
    return await _generate(db, tenant_id, "sales_performance", params)


@router.post("/inventory-turnover")
async def inventory_turnover_report(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    params: ReportParameters,
) -> Any:
    """库存周转报表（未指定时间范围时取最近30天）"""
    return await _generate(db, tenant_id, "inventory_turnover", params)


@router.post("/customer-behavior")
async def customer_behavior_report(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    params: ReportParameters,
) -> Any:
    """客户行为报表"""
    return await _generate(db, tenant_id, "customer_behavior", params)


@router.post("/financial")
async def financial_report(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    params: ReportParameters,
) -> Any:
    """收支利润报表"""
    return await _generate(db, tenant_id, "financial", params)


@router.post("/custom")
async def custom_report(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    params: ReportParameters,
) -> Any:
    """自定义报表：按指标、维度、过滤条件汇总"""
    return await _generate(db, tenant_id, "custom", params)


@router.post("/export/{report_type}")
async def export_report(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    report_type: str,
    params: ReportParameters,
    format: str = Query("csv", pattern="^(csv|xlsx)$", description="csv/xlsx"),
) -> Any:
    """导出报表"""
    if report_type not in REPORT_TYPES:
        raise HTTPException(status_code=400, detail=f"不支持的报表类型: {report_type}")
    report = await _generate(db, tenant_id, report_type, params)
    filename = f"{report_type}_{datetime.utcnow().strftime('%Y%m%d')}"
    return _file_response(report, format, filename)


# ==================== 报表定义 ====================

async def get_definition_or_404(db: AsyncSession, tenant_id: int, report_id: int) -> ReportDefinition:
    definition = await db.get(ReportDefinition, report_id)
    if not definition or definition.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail=f"报表不存在: {report_id}")
    return definition


@router.get("/definitions", response_model=List[ReportDefinitionResponse])
async def list_report_definitions(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    include_inactive: bool = Query(False),
) -> Any:
    """报表定义列表"""
    query = select(ReportDefinition).where(ReportDefinition.tenant_id == tenant_id)
    if not include_inactive:
        query = query.where(ReportDefinition.is_active == True)
    result = await db.execute(query.order_by(ReportDefinition.name))
    return [ReportDefinitionResponse.model_validate(d) for d in result.scalars().all()]


@router.post("/definitions", response_model=ReportDefinitionResponse)
async def create_report_definition(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    definition_in: ReportDefinitionCreate,
) -> Any:
    """创建报表定义"""
    definition = ReportDefinition(**definition_in.model_dump(), tenant_id=tenant_id)
    db.add(definition)
    await db.commit()
    await db.refresh(definition)
    return ReportDefinitionResponse.model_validate(definition)


@router.get("/definitions/{report_id}", response_model=ReportDefinitionResponse)
async def get_report_definition(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    report_id: int,
) -> Any:
    """报表定义详情"""
    return ReportDefinitionResponse.model_validate(await get_definition_or_404(db, tenant_id, report_id))


@router.put("/definitions/{report_id}", response_model=ReportDefinitionResponse)
async def update_report_definition(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    report_id: int,
    definition_in: ReportDefinitionUpdate,
) -> Any:
    """更新报表定义"""
    definition = await get_definition_or_404(db, tenant_id, report_id)
    for field, value in definition_in.model_dump(exclude_unset=True).items():
        setattr(definition, field, value)
    await db.commit()
    await db.refresh(definition)
    return ReportDefinitionResponse.model_validate(definition)


@router.delete("/definitions/{report_id}", response_model=MessageResponse)
async def delete_report_definition(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    report_id: int,
) -> Any:
    """删除报表定义及其执行记录"""
    definition = await get_definition_or_404(db, tenant_id, report_id)
    await db.delete(definition)
    await db.commit()
    return MessageResponse(message="删除成功")


@router.post("/definitions/{report_id}/execute")
async def execute_report(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    report_id: int,
    execute_in: ReportExecuteRequest,
) -> Any:
    """执行报表

    合并默认参数与本次参数，校验必填参数，记录执行结果；
    format 为 csv / xlsx 时返回文件下载
    """
    definition = await get_definition_or_404(db, tenant_id, report_id)
    if not definition.is_active:
        raise HTTPException(status_code=400, detail="报表已停用")

    merged = {**(definition.default_parameters or {}), **execute_in.parameters}
    missing = [
        name for name in (definition.required_parameters or [])
        if merged.get(name) in (None, "", [])
    ]
    if missing:
        raise HTTPException(status_code=400, detail=f"缺少必填参数: {', '.join(missing)}")

    try:
        params = ReportParameters(**merged)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"报表参数无效: {e.errors()[0].get('msg')}")

    execution = ReportExecution(
        tenant_id=tenant_id,
        report_id=definition.id,
        parameter_values=jsonable_encoder(merged),
        output_format=execute_in.format,
        status="running",
        started_at=datetime.utcnow())
    db.add(execution)
    await db.flush()

    try:
        report = await run_report(db, tenant_id, definition.report_type, params.model_dump())
    except ReportError as e:
        execution.status = "failed"
        execution.error_message = str(e)
        execution.finished_at = datetime.utcnow()
        await db.commit()
        logger.warning(f"⚠️ 报表 {definition.name} 执行失败: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        execution.status = "failed"
        execution.error_message = str(e)
        execution.finished_at = datetime.utcnow()
        await db.commit()
        logger.error(f"❌ 报表 {definition.name} 执行异常: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"报表执行失败: {e}")

    execution.status = "completed"
    execution.row_count = count_report_rows(report)
    execution.finished_at = datetime.utcnow()
    await db.commit()
    logger.info(f"📊 报表 {definition.name} 执行完成: {execution.row_count} 行")

    if execute_in.format in ("csv", "xlsx"):
        filename = f"{definition.report_type}_{execution.id}"
        return _file_response(report, execute_in.format, filename)

    return ReportExecuteResult(
        execution=ReportExecutionResponse.model_validate(execution),
        result=jsonable_encoder(report),
    )


@router.get("/definitions/{report_id}/executions", response_model=List[ReportExecutionResponse])
async def list_report_executions(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    report_id: int,
    limit: int = Query(20, ge=1, le=100),
) -> Any:
    """执行记录（最近的在前）"""
    await get_definition_or_404(db, tenant_id, report_id)
    result = await db.execute(
        select(ReportExecution)
        .where(ReportExecution.report_id == report_id)
        .order_by(ReportExecution.started_at.desc(), ReportExecution.id.desc())
        .limit(limit)
    )
    return [ReportExecutionResponse.model_validate(e) for e in result.scalars().all()]
