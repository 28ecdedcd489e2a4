"""
イベントストア (order / payment 共通)

集約ごとのイベント列を追記専用で保持する。同じ集約を並行して
書き換えたリクエストは (aggregate_id, version) の UNIQUE 制約で
後着側が失敗し、ConflictError (409) になる。自動リトライはしない。
"""

import json
import logging

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .db import utcnow
from .errors import ConflictError

logger = logging.getLogger(__name__)


async def append_event(
    session: AsyncSession,
    aggregate_id: str,
    aggregate_type: str,
    event_type: str,
    event_data: dict,
    expected_version: int,
) -> int:
    """
    expected_version の次の番号でイベントを1件追記し、その番号を返す。

    読み込み後に別のリクエストが先に追記していれば ConflictError。
    トランザクションは呼び出し元がコミット・ロールバックする。
    """
    new_version = expected_version + 1
    try:
        await session.execute(
            text("""
                INSERT INTO event_store
                    (aggregate_id, aggregate_type, event_type, event_data, version, created_at)
                VALUES
                    (:agg_id, :agg_type, :evt_type, :evt_data, :version, :now)
            """),
            {
                "agg_id": aggregate_id,
                "agg_type": aggregate_type,
                "evt_type": event_type,
                "evt_data": json.dumps(event_data, default=str),
                "version": new_version,
                "now": utcnow(),
            },
        )
    except IntegrityError as e:
        logger.warning(
            "Version conflict on %s %s (version %d)",
            aggregate_type, aggregate_id, new_version,
        )
        raise ConflictError(aggregate_id, new_version) from e
    return new_version


def _to_record(row, *, with_aggregate: bool) -> dict:
    record = {
        "event_type": row.event_type,
        "event_data": json.loads(row.event_data),
        "version": row.version,
        "created_at": row.created_at,
    }
    if with_aggregate:
        record = {
            "aggregate_id": row.aggregate_id,
            "aggregate_type": row.aggregate_type,
            **record,
        }
    return record


async def load_events(session: AsyncSession, aggregate_id: str) -> list[dict]:
    """集約のイベント列。version は 1 から欠番なく並び、最後の値が現在のバージョン。"""
    result = await session.execute(
        text("""
            SELECT event_type, event_data, version, created_at
            FROM event_store
            WHERE aggregate_id = :agg_id
            ORDER BY version
        """),
        {"agg_id": aggregate_id},
    )
    return [_to_record(row, with_aggregate=False) for row in result]


async def load_all_events(session: AsyncSession) -> list[dict]:
    """
    サービス内の全イベント (/events で公開する)。

    created_at は ISO 8601 の UTC 文字列なので、SQLite でも Postgres でも
    文字列順がそのまま時刻順になる。同一時刻の並びは集約ごとの version で決める。
    """
    result = await session.execute(
        text("""
            SELECT aggregate_id, aggregate_type, event_type, event_data, version, created_at
            FROM event_store
            ORDER BY created_at, aggregate_id, version
        """),
    )
    return [_to_record(row, with_aggregate=True) for row in result]
