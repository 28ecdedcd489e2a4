"""
Notification Service — クエリハンドラ
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


def _row_to_dict(row) -> dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "message": row.message,
        "category": row.category,
        "order_id": row.order_id,
        "read": bool(row.is_read),
        "created_at": row.created_at,
    }


async def get_notification(session: AsyncSession, notification_id: str) -> dict | None:
    result = await session.execute(
        text("SELECT * FROM notifications WHERE id = :id"),
        {"id": notification_id},
    )
    row = result.fetchone()
    if not row:
        return None
    return _row_to_dict(row)


async def list_notifications(
    session: AsyncSession,
    user_id: str,
    unread_only: bool = False,
) -> list[dict]:
    """利用者の通知を新しい順に返す。"""
    sql = "SELECT * FROM notifications WHERE user_id = :user_id"
    params: dict = {"user_id": user_id}
    if unread_only:
        sql += " AND is_read = :unread"
        params["unread"] = False
    sql += " ORDER BY created_at DESC"
    result = await session.execute(text(sql), params)
    return [_row_to_dict(row) for row in result.fetchall()]
