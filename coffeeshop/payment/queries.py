"""
Payment Service — クエリハンドラ (CQRS Read 側)
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


def _row_to_dict(row) -> dict:
    return {
        "id": row.id,
        "order_id": row.order_id,
        "user_id": row.user_id,
        "amount": float(row.amount),
        "method": row.method,
        "status": row.status,
        "transaction_id": row.transaction_id,
        "failure_reason": row.failure_reason,
        "created_at": row.created_at,
        "completed_at": row.completed_at,
        "refunded_at": row.refunded_at,
    }


async def get_payment(session: AsyncSession, payment_id: str) -> dict | None:
    result = await session.execute(
        text("SELECT * FROM payments_read_model WHERE id = :id"),
        {"id": payment_id},
    )
    row = result.fetchone()
    if not row:
        return None
    return _row_to_dict(row)


async def get_payment_by_order(session: AsyncSession, order_id: str) -> dict | None:
    """注文に紐づく最新の決済を返す。"""
    result = await session.execute(
        text("""
            SELECT * FROM payments_read_model
            WHERE order_id = :order_id
            ORDER BY created_at DESC
        """),
        {"order_id": order_id},
    )
    row = result.first()
    if not row:
        return None
    return _row_to_dict(row)


async def list_payments(session: AsyncSession, user_id: str | None = None) -> list[dict]:
    if user_id is None:
        result = await session.execute(
            text("SELECT * FROM payments_read_model ORDER BY created_at DESC"),
        )
    else:
        result = await session.execute(
            text("""
                SELECT * FROM payments_read_model
                WHERE user_id = :user_id
                ORDER BY created_at DESC
            """),
            {"user_id": user_id},
        )
    return [_row_to_dict(row) for row in result.fetchall()]
