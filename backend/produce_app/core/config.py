from datetime import date
from typing import List, Union
import logging

from pydantic import AnyHttpUrl, Field, validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    PROJECT_NAME: str = "Produce Distribution Backend"
    API_V1_STR: str = "/api/v1"
    # Must be overridden through .env or the environment in production
    SECRET_KEY: str = Field(
        default="dev-only-secret-key-please-change-in-production",
        description="JWT signing key"
    )
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173"
    ]

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    SQLITE_DATABASE_URI: str = "sqlite:///./produce.db"

    # Ledger entries dated before this are ignored by the stock calculation
    STOCK_BASE_DATE: date = date(2026, 1, 5)
    HIGH_VALUE_ORDER_THRESHOLD: float = 5000

    # Three-way matching tolerances (percent)
    PRICE_TOLERANCE_PERCENT: float = 2
    QUANTITY_TOLERANCE_PERCENT: float = 0
    APPROVAL_THRESHOLD_PERCENT: float = 5

    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True
    LOG_DIR: str = "logs"

    AUTO_BACKUP_ENABLED: bool = True
    AUTO_BACKUP_HOUR: int = 3  # 0-23
    AUTO_BACKUP_MINUTE: int = 0  # 0-59
    AUTO_BACKUP_KEEP_COUNT: int = 7

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
logger.info(f"Settings loaded: API_V1_STR={settings.API_V1_STR}, CORS={settings.BACKEND_CORS_ORIGINS}")
