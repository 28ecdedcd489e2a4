"""
Order Service — クエリハンドラ (CQRS の Read 側)

読み取りはイベントから投影されたリードモデルから行う。
"""

import json

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


def _row_to_dict(row) -> dict:
    # Row の属性名と衝突するため _mapping で読む
    items = row._mapping["items"]
    return {
        "id": row.id,
        "user_id": row.user_id,
        "items": json.loads(items),
        "total_amount": float(row.total_amount),
        "status": row.status,
        "payment_status": row.payment_status,
        "delivery_address": row.delivery_address,
        "instructions": row.instructions,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


async def get_order(session: AsyncSession, order_id: str) -> dict | None:
    """リードモデルから注文を取得する。"""
    result = await session.execute(
        text("SELECT * FROM orders_read_model WHERE id = :id"),
        {"id": order_id},
    )
    row = result.fetchone()
    if not row:
        return None
    return _row_to_dict(row)


async def list_orders(session: AsyncSession, user_id: str | None = None) -> list[dict]:
    """注文一覧を新しい順に返す。user_id を指定するとその利用者の注文のみ。"""
    if user_id is None:
        result = await session.execute(
            text("SELECT * FROM orders_read_model ORDER BY created_at DESC"),
        )
    else:
        result = await session.execute(
            text("""
                SELECT * FROM orders_read_model
                WHERE user_id = :user_id
                ORDER BY created_at DESC
            """),
            {"user_id": user_id},
        )
    return [_row_to_dict(row) for row in result.fetchall()]
