import os

import uvicorn

if __name__ == "__main__":
    # 开发环境自动重载，设置 ERP_ENV=production 关闭
    is_dev = os.getenv("ERP_ENV", "development") != "production"

    uvicorn.run(
        "erp.main:app",
        host=os.getenv("ERP_HOST", "127.0.0.1"),
        port=int(os.getenv("ERP_PORT", "8000")),
        reload=is_dev,
        log_level="info"
    )
