"""
Payment Service — 非同期決済処理とコールバック

決済受付のレスポンスを返した後、バックグラウンドで:
  1. 一定時間待つ (決済ゲートウェイの処理時間を模擬)
  2. 成功/失敗を確定して保存
  3. Order Service の決済コールバックを呼ぶ

コールバックは at-most-once。失敗してもリトライせず、
決済レコード側が正となる (後から照合できる)。
"""

import asyncio
import logging

import httpx
import redis.asyncio as aioredis
from sqlalchemy.orm import sessionmaker

from . import commands
from .settlement import SettlementDecision

logger = logging.getLogger(__name__)


class OrderCallbackClient:
    """Order Service の PATCH /orders/{id}/payment を呼ぶ。"""

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def report(self, order_id: str, payment_status: str) -> None:
        try:
            resp = await self.client.patch(
                f"{self.base_url}/orders/{order_id}/payment",
                json={"payment_status": payment_status},
            )
            resp.raise_for_status()
            logger.info("Reported payment %s for order %s", payment_status, order_id)
        except httpx.HTTPError as e:
            logger.error("Order callback failed for order %s: %s", order_id, e)


class PaymentProcessor:
    def __init__(
        self,
        session_factory: sessionmaker,
        redis: aioredis.Redis,
        settler: SettlementDecision,
        callback: OrderCallbackClient,
        delay: float,
    ):
        self.session_factory = session_factory
        self.redis = redis
        self.settler = settler
        self.callback = callback
        self.delay = delay

    async def process(self, payment_id: str) -> None:
        """決済を確定させ、結果を一度だけ Order Service へ送る。"""
        await asyncio.sleep(self.delay)
        try:
            async with self.session_factory() as session:
                agg = await commands.resolve_payment(
                    session, self.redis, self.settler, payment_id
                )
        except Exception:
            logger.exception("Payment processing error for %s", payment_id)
            return
        await self.callback.report(agg.order_id, agg.status.value)
