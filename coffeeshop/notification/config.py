"""Notification Service — 設定"""

import os

from pydantic import BaseModel


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./notifications.db"
    log_level: str = "INFO"
    port: int = 3005

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            database_url=os.environ.get("DATABASE_URL", defaults.database_url),
            log_level=os.environ.get("LOG_LEVEL", defaults.log_level),
            port=int(os.environ.get("PORT", defaults.port)),
        )
