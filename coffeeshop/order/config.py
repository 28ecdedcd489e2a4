"""Order Service — 設定

環境変数から Settings を組み立て、create_app() に明示的に渡す。
"""

import os

from pydantic import BaseModel, Field


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./orders.db"
    redis_url: str = "redis://localhost:6379"
    # Pub/Sub 発行が詰まらないよう接続・送受信の待ち時間を制限する (秒)
    redis_timeout: float = Field(2.0, gt=0)
    product_service_url: str = "http://localhost:3002"
    payment_service_url: str = "http://localhost:3004"
    notification_service_url: str = "http://localhost:3005"
    http_timeout: float = 10.0
    log_level: str = "INFO"
    port: int = 3003

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            database_url=os.environ.get("DATABASE_URL", defaults.database_url),
            redis_url=os.environ.get("REDIS_URL", defaults.redis_url),
            redis_timeout=float(os.environ.get("REDIS_TIMEOUT", defaults.redis_timeout)),
            product_service_url=os.environ.get(
                "PRODUCT_SERVICE_URL", defaults.product_service_url
            ),
            payment_service_url=os.environ.get(
                "PAYMENT_SERVICE_URL", defaults.payment_service_url
            ),
            notification_service_url=os.environ.get(
                "NOTIFICATION_SERVICE_URL", defaults.notification_service_url
            ),
            http_timeout=float(os.environ.get("HTTP_TIMEOUT", defaults.http_timeout)),
            log_level=os.environ.get("LOG_LEVEL", defaults.log_level),
            port=int(os.environ.get("PORT", defaults.port)),
        )
