"""
Notification Service — コマンドハンドラ

通知は単一レコードの CRUD なので、イベントストアは使わず
テーブルを直接更新する。
"""

import logging
from enum import Enum
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.db import utcnow
from ..common.errors import NotFoundError
from . import queries

logger = logging.getLogger(__name__)


class NotificationCategory(str, Enum):
    ORDER_UPDATE = "order_update"
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    PROMOTIONAL = "promotional"
    SYSTEM = "system"


async def create_notification(
    session: AsyncSession,
    user_id: str,
    message: str,
    category: NotificationCategory,
    order_id: str | None = None,
) -> dict:
    notification_id = str(uuid4())
    await session.execute(
        text("""
            INSERT INTO notifications
                (id, user_id, message, category, order_id, is_read, created_at)
            VALUES
                (:id, :user_id, :message, :category, :order_id, :is_read, :now)
        """),
        {
            "id": notification_id,
            "user_id": user_id,
            "message": message,
            "category": category.value,
            "order_id": order_id,
            "is_read": False,
            "now": utcnow(),
        },
    )
    await session.commit()
    # 本番ではここでメール / SMS / プッシュ通知を送る
    logger.info("Notification sent to user %s: %s", user_id, message)
    return await queries.get_notification(session, notification_id)


async def mark_read(session: AsyncSession, notification_id: str) -> dict:
    result = await session.execute(
        text("UPDATE notifications SET is_read = :is_read WHERE id = :id"),
        {"id": notification_id, "is_read": True},
    )
    if result.rowcount == 0:
        raise NotFoundError("Notification", notification_id)
    await session.commit()
    return await queries.get_notification(session, notification_id)


async def mark_all_read(session: AsyncSession, user_id: str) -> int:
    """利用者の未読通知をすべて既読にし、更新件数を返す。"""
    result = await session.execute(
        text("""
            UPDATE notifications SET is_read = :is_read
            WHERE user_id = :user_id AND is_read = :unread
        """),
        {"user_id": user_id, "is_read": True, "unread": False},
    )
    await session.commit()
    return result.rowcount


async def delete_notification(session: AsyncSession, notification_id: str) -> None:
    result = await session.execute(
        text("DELETE FROM notifications WHERE id = :id"),
        {"id": notification_id},
    )
    if result.rowcount == 0:
        raise NotFoundError("Notification", notification_id)
    await session.commit()
