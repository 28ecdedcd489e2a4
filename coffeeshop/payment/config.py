"""Payment Service — 設定"""

import os

from pydantic import BaseModel, Field


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./payments.db"
    redis_url: str = "redis://localhost:6379"
    # Pub/Sub 発行が詰まらないよう接続・送受信の待ち時間を制限する (秒)
    redis_timeout: float = Field(2.0, gt=0)
    order_service_url: str = "http://localhost:3003"
    # 決済処理を模擬する待ち時間 (秒)
    processing_delay: float = Field(2.0, ge=0)
    success_rate: float = Field(0.95, ge=0, le=1)
    http_timeout: float = 10.0
    log_level: str = "INFO"
    port: int = 3004

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            database_url=os.environ.get("DATABASE_URL", defaults.database_url),
            redis_url=os.environ.get("REDIS_URL", defaults.redis_url),
            redis_timeout=float(os.environ.get("REDIS_TIMEOUT", defaults.redis_timeout)),
            order_service_url=os.environ.get(
                "ORDER_SERVICE_URL", defaults.order_service_url
            ),
            processing_delay=float(
                os.environ.get("PAYMENT_PROCESSING_DELAY", defaults.processing_delay)
            ),
            success_rate=float(
                os.environ.get("PAYMENT_SUCCESS_RATE", defaults.success_rate)
            ),
            http_timeout=float(os.environ.get("HTTP_TIMEOUT", defaults.http_timeout)),
            log_level=os.environ.get("LOG_LEVEL", defaults.log_level),
            port=int(os.environ.get("PORT", defaults.port)),
        )
