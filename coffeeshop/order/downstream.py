"""
Order Service — 外部サービスクライアント

- CatalogClient      : 商品の価格・販売可否を同期で問い合わせる
- PaymentGateway     : Payment Service に決済を依頼する (fire-and-forget)
- NotificationSink   : Notification Service に通知を送る (fire-and-forget)

fire-and-forget 系の呼び出しはバックグラウンドタスクとして実行され、
失敗してもログに残すだけで呼び出し元の処理は巻き戻さない。
"""

import logging

import httpx
from pydantic import BaseModel

from ..common.errors import DownstreamUnavailable

logger = logging.getLogger(__name__)


class Product(BaseModel):
    id: str
    name: str
    price: float
    available: bool = True


class CatalogClient:
    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def lookup(self, product_id: str) -> Product | None:
        """
        商品を取得する。存在しなければ None。
        通信エラーや不正なレスポンスは DownstreamUnavailable。
        """
        try:
            resp = await self.client.get(f"{self.base_url}/api/products/{product_id}")
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            data = resp.json()
            return Product(
                id=product_id,
                name=data["name"],
                price=data["price"],
                available=data.get("available", True),
            )
        except httpx.HTTPError as e:
            raise DownstreamUnavailable("product-service", str(e)) from e
        except (KeyError, ValueError) as e:
            raise DownstreamUnavailable(
                "product-service", f"malformed product {product_id}: {e}"
            ) from e


class PaymentGateway:
    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def request_charge(self, order_id: str, user_id: str, amount: float) -> None:
        try:
            resp = await self.client.post(
                f"{self.base_url}/payments",
                json={"order_id": order_id, "user_id": user_id, "amount": amount},
            )
            resp.raise_for_status()
            logger.info("Payment requested for order %s (%.2f)", order_id, amount)
        except httpx.HTTPError as e:
            # 注文は作成済み。決済は後から照合・再実行できる
            logger.error("Payment service error for order %s: %s", order_id, e)


class NotificationSink:
    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def notify(
        self,
        user_id: str,
        message: str,
        category: str,
        order_id: str | None = None,
    ) -> None:
        try:
            resp = await self.client.post(
                f"{self.base_url}/notifications",
                json={
                    "user_id": user_id,
                    "message": message,
                    "category": category,
                    "order_id": order_id,
                },
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Notification service error for user %s: %s", user_id, e)
