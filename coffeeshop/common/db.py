"""
DB 接続とテーブル定義の共通部分

各サービスは自分専用のデータベースを持つ (Database per Service)。
テーブル定義は SQLAlchemy Core の MetaData で宣言し、起動時に作成する。
クエリ自体は各サービスのモジュールで text() による SQL を書く。
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker


def event_store_table(metadata: MetaData) -> Table:
    """
    イベントストアのテーブルを metadata に登録する。

    (aggregate_id, version) の UNIQUE 制約が楽観的ロックの役割を果たす。
    """
    return Table(
        "event_store",
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("aggregate_id", String(36), nullable=False, index=True),
        Column("aggregate_type", String(32), nullable=False),
        Column("event_type", String(64), nullable=False),
        Column("event_data", Text, nullable=False),
        Column("version", Integer, nullable=False),
        Column("created_at", String(40), nullable=False),
        UniqueConstraint("aggregate_id", "version", name="uq_event_store_version"),
    )


def create_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False)


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine, metadata: MetaData) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


def utcnow() -> str:
    """タイムスタンプは ISO 8601 (UTC) 文字列で保存する。"""
    return datetime.now(timezone.utc).isoformat()
