"""Pytest fixtures for coffeeshop service tests."""

import json

import httpx
import pytest
from fakeredis import aioredis as fake_aioredis
from fastapi.testclient import TestClient

from coffeeshop.notification.config import Settings as NotificationSettings
from coffeeshop.notification.main import create_app as create_notification_app
from coffeeshop.order.config import Settings as OrderSettings
from coffeeshop.order.main import create_app as create_order_app
from coffeeshop.payment.config import Settings as PaymentSettings
from coffeeshop.payment.main import create_app as create_payment_app
from coffeeshop.payment.settlement import FixedSettlement

PRODUCTS_URL = "http://products"
PAYMENTS_URL = "http://payments"
NOTIFICATIONS_URL = "http://notifications"
ORDERS_URL = "http://orders"


class FakeDownstream:
    """
    Stands in for every service an app calls over HTTP.

    Serves catalog lookups from ``products`` and records every other request
    so tests can assert on fire-and-forget calls.
    """

    def __init__(self):
        self.products: dict[str, dict] = {}
        self.requests: list[dict] = []
        self.unreachable: set[str] = set()
        self.failing: set[str] = set()

    def add_product(self, product_id: str, name: str, price: float, available: bool = True):
        self.products[product_id] = {
            "_id": product_id,
            "name": name,
            "price": price,
            "available": available,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host in self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)

        body = json.loads(request.content) if request.content else None
        self.requests.append(
            {"method": request.method, "host": host, "path": request.url.path, "json": body}
        )
        if host in self.failing:
            return httpx.Response(503, json={"error": "Service unavailable"})

        if host == "products":
            product = self.products.get(request.url.path.rsplit("/", 1)[-1])
            if product is None:
                return httpx.Response(404, json={"error": "Product not found"})
            return httpx.Response(200, json=product)
        return httpx.Response(201, json={})

    def calls_to(self, host: str) -> list[dict]:
        return [r for r in self.requests if r["host"] == host]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def downstream():
    return FakeDownstream()


@pytest.fixture
def catalog(downstream):
    """A small catalog with two available products and one sold out."""
    downstream.add_product("espresso", "Espresso", 2.99)
    downstream.add_product("croissant", "Croissant", 4.49)
    downstream.add_product("seasonal", "Pumpkin Latte", 5.50, available=False)
    return downstream


@pytest.fixture
def order_client(tmp_path, catalog):
    settings = OrderSettings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}",
        product_service_url=PRODUCTS_URL,
        payment_service_url=PAYMENTS_URL,
        notification_service_url=NOTIFICATIONS_URL,
        log_level="DEBUG",
    )
    app = create_order_app(
        settings,
        redis=fake_aioredis.FakeRedis(decode_responses=True),
        transport=catalog.transport,
    )
    with TestClient(app) as client:
        yield client


@pytest.fixture
def settler():
    return FixedSettlement(success=True)


@pytest.fixture
def payment_client(tmp_path, downstream, settler):
    settings = PaymentSettings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}",
        order_service_url=ORDERS_URL,
        processing_delay=0,
        log_level="DEBUG",
    )
    app = create_payment_app(
        settings,
        settler=settler,
        redis=fake_aioredis.FakeRedis(decode_responses=True),
        transport=downstream.transport,
    )
    with TestClient(app) as client:
        yield client


@pytest.fixture
def notification_client(tmp_path):
    settings = NotificationSettings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'notifications.db'}",
    )
    with TestClient(create_notification_app(settings)) as client:
        yield client


@pytest.fixture
def place_order(order_client):
    """Create an order for two espressos and a croissant, return its JSON."""

    def _place(user_id: str = "user-1", items=None):
        response = order_client.post(
            "/orders",
            json={
                "user_id": user_id,
                "items": items or [
                    {"product_id": "espresso", "quantity": 2},
                    {"product_id": "croissant", "quantity": 1},
                ],
                "delivery_address": "1 Bean Street",
            },
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _place
