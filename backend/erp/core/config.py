from typing import List, Union
import logging

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    PROJECT_NAME: str = "批发业务管理系统"
    API_PREFIX: str = "/api"

    # CORS配置
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # 数据库配置
    SQLITE_DATABASE_URI: str = "sqlite:///./wholesale_erp.db"

    # 多租户：请求未携带 X-Tenant-ID 时使用的租户
    DEFAULT_TENANT_ID: int = 1
    DEFAULT_TENANT_NAME: str = "Default Wholesale"

    # 业务参数
    LOW_INVENTORY_THRESHOLD: int = Field(default=10, ge=0, description="低库存阈值")
    PAYMENT_TERM_DAYS: int = Field(default=30, ge=0, description="默认账期（天）")
    REPORT_TOP_N: int = 10  # 报表中的排行数量
    METRICS_TOP_N: int = 5  # 销售指标中的排行数量

    # 定时任务
    SCHEDULER_ENABLED: bool = True
    OVERDUE_CHECK_HOUR: int = Field(default=2, ge=0, le=23)
    OVERDUE_CHECK_MINUTE: int = Field(default=0, ge=0, le=59)

    # 日志
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
logger.info(f"加载配置: API_PREFIX={settings.API_PREFIX}, CORS={settings.BACKEND_CORS_ORIGINS}")
