"""
Redis Pub/Sub へのドメインイベント発行

コミット済みのイベントを他サービス向けに流す。
Pub/Sub は fire-and-forget なので、発行の失敗はログに残して捨てる
(書き込み自体はすでに成功している)。

発行はコミット後に BackgroundTasks から呼ばれる。Redis が応答しなくても
待ち続けないよう、接続と送受信にタイムアウトを付けて接続を作る。
"""

import json
import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def connect(url: str, timeout: float) -> aioredis.Redis:
    return aioredis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=timeout,
        socket_timeout=timeout,
    )


async def publish_event(
    redis: aioredis.Redis,
    channel: str,
    event_type: str,
    data: dict,
) -> None:
    try:
        await redis.publish(channel, json.dumps({
            "event_type": event_type,
            "data": data,
        }, default=str))
    except RedisError:
        logger.exception("Failed to publish %s on %s", event_type, channel)
