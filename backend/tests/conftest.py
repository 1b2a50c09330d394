"""
测试配置

使用临时 SQLite 文件库；每个用例前重建表并写入默认租户。
不启动应用生命周期（不启动定时任务），通过覆盖 get_db 注入测试会话。
"""

import asyncio
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="erp-test-")
_DB_PATH = os.path.join(_TMP_DIR, "test.db")

os.environ["SQLITE_DATABASE_URI"] = f"sqlite:///{_DB_PATH}"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from erp.core.deps import get_db
from erp.db.base import Base
from erp.db.init_db import ensure_default_tenant
from erp.main import app

test_engine = create_async_engine(f"sqlite+aiosqlite:///{_DB_PATH}", poolclass=NullPool)
TestingSessionLocal = sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def _reset_database():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    async with TestingSessionLocal() as db:
        await ensure_default_tenant(db)


async def override_get_db():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def reset_db():
    asyncio.run(_reset_database())


@pytest.fixture
def session_factory():
    """直接访问测试库的会话工厂（服务层测试用）"""
    return TestingSessionLocal


@pytest.fixture
def client(reset_db):
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def location(client):
    resp = client.post("/api/locations/", json={"name": "Main Warehouse"})
    assert resp.status_code == 200
    return resp.json()


@pytest.fixture
def second_location(client):
    resp = client.post("/api/locations/", json={"name": "Backroom"})
    assert resp.status_code == 200
    return resp.json()


@pytest.fixture
def customer(client):
    resp = client.post("/api/customers/", json={"name": "Evergreen Dispensary", "credit_limit": 5000})
    assert resp.status_code == 200
    return resp.json()


@pytest.fixture
def vendor(client):
    resp = client.post("/api/vendors/", json={"name": "Green Valley Farms", "payment_terms": "Net 30"})
    assert resp.status_code == 200
    return resp.json()
