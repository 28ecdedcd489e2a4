"""Order Service — テーブル定義 (イベントストア + リードモデル)"""

from sqlalchemy import Column, Float, MetaData, String, Table, Text

from ..common.db import event_store_table

metadata = MetaData()

event_store = event_store_table(metadata)

# 明細は JSON 文字列で保持する (作成後は不変)
orders_read_model = Table(
    "orders_read_model",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("items", Text, nullable=False),
    Column("total_amount", Float, nullable=False),
    Column("status", String(16), nullable=False),
    Column("payment_status", String(16), nullable=False),
    Column("delivery_address", Text, nullable=False),
    Column("instructions", Text, nullable=True),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)
