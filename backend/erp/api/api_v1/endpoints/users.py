"""用户管理API（当前租户内）"""

from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.deps import get_db, get_tenant_id
from erp.core.permissions import ROLE_PERMISSIONS, default_permissions
from erp.models import User
from erp.schemas.common import MessageResponse
from erp.schemas.tenant import UserCreate, UserUpdate, UserResponse, UserListResponse

router = APIRouter()


async def get_user_or_404(db: AsyncSession, tenant_id: int, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user or user.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail=f"用户不存在: {user_id}")
    return user


@router.get("/roles", response_model=Dict[str, List[str]])
async def list_roles() -> Any:
    """角色及其默认权限"""
    return ROLE_PERMISSIONS


@router.get("/", response_model=UserListResponse)
async def list_users(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="搜索邮箱/姓名"),
) -> Any:
    """用户列表"""
    conditions = [User.tenant_id == tenant_id]
    if role:
        conditions.append(User.role == role)
    if search:
        conditions.append(or_(
            User.email.contains(search),
            User.first_name.contains(search),
            User.last_name.contains(search),
        ))

    query = select(User).where(and_(*conditions))
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    query = query.order_by(User.email).offset((page - 1) * limit).limit(limit)
    users = (await db.execute(query)).scalars().all()

    return UserListResponse(
        data=[UserResponse.model_validate(u) for u in users],
        total=total, page=page, limit=limit
    )


@router.post("/", response_model=UserResponse)
async def create_user(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    user_in: UserCreate,
) -> Any:
    """创建用户，邮箱在租户内唯一；未指定权限时使用角色默认权限"""
    exists = (await db.execute(
        select(func.count(User.id)).where(User.tenant_id == tenant_id, User.email == user_in.email)
    )).scalar() or 0
    if exists:
        raise HTTPException(status_code=409, detail=f"邮箱已存在: {user_in.email}")

    data = user_in.model_dump()
    if data["permissions"] is None:
        data["permissions"] = default_permissions(user_in.role)
    user = User(**data, tenant_id=tenant_id)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    user_id: int,
) -> Any:
    """用户详情"""
    return UserResponse.model_validate(await get_user_or_404(db, tenant_id, user_id))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    user_id: int,
    user_in: UserUpdate,
) -> Any:
    """更新用户，只改角色时权限随角色重置"""
    user = await get_user_or_404(db, tenant_id, user_id)
    update_data = user_in.model_dump(exclude_unset=True)
    if "role" in update_data and "permissions" not in update_data:
        update_data["permissions"] = default_permissions(update_data["role"])
    for field, value in update_data.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    *,
    db: AsyncSession = Depends(get_db),
    tenant_id: int = Depends(get_tenant_id),
    user_id: int,
) -> Any:
    """删除用户"""
    user = await get_user_or_404(db, tenant_id, user_id)
    await db.delete(user)
    await db.commit()
    return MessageResponse(message="删除成功")
