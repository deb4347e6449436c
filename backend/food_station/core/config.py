from typing import List, Union
import logging

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    PROJECT_NAME: str = "Food Processing Station"
    API_V1_STR: str = "/api/v1"

    # CORS配置
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3001"
    ]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # 数据库配置
    SQLITE_DATABASE_URI: str = "sqlite:///./food_station.db"

    # 日志目录
    LOG_DIR: str = "logs"

    # 周/月查询允许的年份范围
    MIN_YEAR: int = Field(default=2020, description="允许查询的最早年份")
    MAX_YEAR: int = Field(default=2030, description="允许查询的最晚年份")
    MONTH_COUNT_MAX: int = 24

    # 库存预警
    LOW_STOCK_THRESHOLD: float = 10
    DEFAULT_DAYS_UNTIL_EXPIRY: int = 30  # 没有保质期的批次按30天计

    # 菜单建议 / 每日计划
    DEFAULT_RATION_PRICE: float = 15000  # 标准价格表查不到时的单价
    DAILY_BUDGET_PER_PERSON: float = 65000  # 每人每天伙食标准
    SUGGESTION_LIMIT: int = 20

    # 定时刷新保质期状态
    EXPIRY_REFRESH_ENABLED: bool = True
    EXPIRY_REFRESH_HOUR: int = 0  # 0-23
    EXPIRY_REFRESH_MINUTE: int = 5  # 0-59

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
logger.info(f"加载配置: API_V1_STR={settings.API_V1_STR}, DB={settings.SQLITE_DATABASE_URI}")
