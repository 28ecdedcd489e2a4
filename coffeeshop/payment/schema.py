"""Payment Service — テーブル定義 (イベントストア + リードモデル)"""

from sqlalchemy import Column, Float, Index, MetaData, String, Table, Text, text

from ..common.db import event_store_table

metadata = MetaData()

event_store = event_store_table(metadata)

payments_read_model = Table(
    "payments_read_model",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("order_id", String(36), nullable=False, index=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("amount", Float, nullable=False),
    Column("method", String(16), nullable=False),
    Column("status", String(16), nullable=False),
    Column("transaction_id", String(64), nullable=True),
    Column("failure_reason", Text, nullable=True),
    Column("created_at", String(40), nullable=False),
    Column("completed_at", String(40), nullable=True),
    Column("refunded_at", String(40), nullable=True),
)

# 1つの注文に有効な決済 (failed 以外) は1件だけ
Index(
    "uq_payments_active_order",
    payments_read_model.c.order_id,
    unique=True,
    sqlite_where=text("status != 'failed'"),
    postgresql_where=text("status != 'failed'"),
)
