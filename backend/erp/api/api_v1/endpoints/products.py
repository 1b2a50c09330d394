"""商品管理API"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.deps import get_db, get_tenant_id
from erp.models import Product
from erp.schemas.common import MessageResponse
from erp.schemas.product import ProductCreate, ProductUpdate, ProductResponse, ProductListResponse
from erp.services.inventory import (
    get_product_or_404, generate_sku, build_product_filters,
    add_inventory, has_inventory_records, get_low_inventory_products
)
from erp.services.vendors import get_vendor_or_404

router = APIRouter()


async def ensure_sku_unique(
    db: AsyncSession,
    tenant_id: int,
    sku: str,
    exclude_id: Optional[int] = None) -> None:
    query = select(func.count(Product.id)).where(Product.tenant_id == tenant_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.where(Product.id != exclude_id)
    if ((await db.execute(query)).scalar() or 0) > 0:
        raise HTTPException(status_code=409, detail=f"SKU已存在: {sku}")


@router.get("/", response_model=ProductListResponse)
async def list_products(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="搜索品名/SKU/描述"),
    category: Optional[str] = Query(None, description="分类"),
    strain_type: Optional[str] = Query(None, description="品种类型"),
    vendor_id: Optional[int] = Query(None, description="供应商"),
    min_price: Optional[float] = Query(None, ge=0, description="最低售价"),
    max_price: Optional[float] = Query(None, ge=0, description="最高售价"),
) -> Any:
    """获取商品列表"""
    conditions = build_product_filters(
        tenant_id, search, category, strain_type, vendor_id, min_price, max_price)
    query = select(Product).where(and_(*conditions))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.order_by(Product.sku).offset((page - 1) * limit).limit(limit)
    products = (await db.execute(query)).scalars().all()

    return ProductListResponse(
        data=[ProductResponse.model_validate(p) for p in products],
        total=total, page=page, limit=limit
    )


@router.get("/low-inventory", response_model=List[ProductResponse])
async def list_low_inventory_products(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    threshold: Optional[int] = Query(None, ge=0, description="阈值，默认取配置"),
) -> Any:
    """总库存低于阈值的商品"""
    products = await get_low_inventory_products(db, tenant_id, threshold)
    return [ProductResponse.model_validate(p) for p in products]


@router.post("/", response_model=ProductResponse)
async def create_product(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    product_in: ProductCreate,
) -> Any:
    """创建商品

    SKU 留空时自动生成，有供应商编码时以其为前缀；
    同时提供 initial_quantity 和 location_id 时入库初始库存
    """
    vendor_code = None
    if product_in.vendor_id:
        vendor = await get_vendor_or_404(db, tenant_id, product_in.vendor_id)
        vendor_code = vendor.code

    if product_in.sku:
        await ensure_sku_unique(db, tenant_id, product_in.sku)
        sku = product_in.sku
    else:
        sku = await generate_sku(db, tenant_id, vendor_code)

    data = product_in.model_dump(exclude={"sku", "initial_quantity", "location_id"})
    product = Product(**data, sku=sku, vendor_code=vendor_code, quantity=0, tenant_id=tenant_id)
    db.add(product)
    await db.flush()

    if product_in.initial_quantity and product_in.location_id:
        await add_inventory(
            db, tenant_id, product.id, product_in.location_id, product_in.initial_quantity,
            batch_number=product_in.batch_number,
            reason="初始库存")

    await db.commit()
    await db.refresh(product)
    return ProductResponse.model_validate(product)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    product_id: int,
) -> Any:
    """获取商品详情"""
    product = await get_product_or_404(db, tenant_id, product_id)
    return ProductResponse.model_validate(product)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    product_id: int,
    product_in: ProductUpdate,
) -> Any:
    """更新商品（库存数量不能直接修改）"""
    product = await get_product_or_404(db, tenant_id, product_id)

    update_data = product_in.model_dump(exclude_unset=True)
    if update_data.get("sku") and update_data["sku"] != product.sku:
        await ensure_sku_unique(db, tenant_id, update_data["sku"], exclude_id=product.id)
    if "vendor_id" in update_data:
        if update_data["vendor_id"]:
            vendor = await get_vendor_or_404(db, tenant_id, update_data["vendor_id"])
            product.vendor_code = vendor.code
        else:
            product.vendor_code = None

    for field, value in update_data.items():
        setattr(product, field, value)

    await db.commit()
    await db.refresh(product)
    return ProductResponse.model_validate(product)


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    product_id: int,
) -> Any:
    """删除商品，仍有库存记录的商品不能删除"""
    product = await get_product_or_404(db, tenant_id, product_id)

    if await has_inventory_records(db, product_id=product_id):
        raise HTTPException(status_code=400, detail="该商品仍有库存，无法删除")

    await db.delete(product)
    await db.commit()
    return MessageResponse(message="删除成功")
