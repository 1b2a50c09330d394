"""
演示数据初始化脚本
- 创建数据表和默认租户
- 写入演示用的用户、库位、供应商、商品、客户、订单
"""

import asyncio
import os
import sys

# 添加项目路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from erp.core.config import settings
from erp.core.logging_config import setup_logging
from erp.db.init_db import ensure_tables_exist
from erp.db.seed import seed_demo_data
from erp.db.session import SessionLocal


async def main():
    setup_logging(settings.LOG_LEVEL, log_dir=None)
    await ensure_tables_exist()
    async with SessionLocal() as db:
        result = await seed_demo_data(db)

    if result["skipped"]:
        print("ℹ️  演示数据已存在，未写入业务数据")
    else:
        print("✅ 演示数据写入完成")
    for name, count in result["created"].items():
        print(f"   {name}: {count}")


if __name__ == "__main__":
    asyncio.run(main())
