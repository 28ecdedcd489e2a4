"""Notification Service — テーブル定義"""

from sqlalchemy import Boolean, Column, MetaData, String, Table, Text

metadata = MetaData()

notifications = Table(
    "notifications",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("message", Text, nullable=False),
    Column("category", String(32), nullable=False),
    Column("order_id", String(36), nullable=True),
    Column("is_read", Boolean, nullable=False, default=False),
    Column("created_at", String(40), nullable=False),
)
