"""Tests for domain event publication on Redis Pub/Sub."""

import asyncio
import json

import pytest
from fakeredis import aioredis as fake_aioredis
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from coffeeshop.common.publisher import connect, publish_event
from coffeeshop.order.config import Settings as OrderSettings
from coffeeshop.order.main import create_app as create_order_app
from coffeeshop.payment.config import Settings as PaymentSettings
from coffeeshop.payment.main import create_app as create_payment_app
from coffeeshop.payment.settlement import FixedSettlement


class UnreachableRedis:
    """Redis client whose broker is down: every publish fails."""

    def __init__(self):
        self.channels: list[str] = []

    async def publish(self, channel, message):
        self.channels.append(channel)
        raise RedisConnectionError("Connection refused")


class TestConnect:
    def test_socket_timeouts_applied(self):
        client = connect("redis://localhost:6379", 1.5)
        kwargs = client.connection_pool.connection_kwargs
        assert kwargs["socket_connect_timeout"] == 1.5
        assert kwargs["socket_timeout"] == 1.5
        asyncio.run(client.aclose())

    def test_timeout_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("REDIS_TIMEOUT", "0.5")
        assert OrderSettings.from_env().redis_timeout == 0.5
        assert PaymentSettings.from_env().redis_timeout == 0.5

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            OrderSettings(redis_timeout=0)


class TestPublishEvent:
    def test_message_envelope(self):
        async def scenario():
            redis = fake_aioredis.FakeRedis(decode_responses=True)
            pubsub = redis.pubsub()
            await pubsub.subscribe("order_events")
            await pubsub.get_message(timeout=1)  # subscribe confirmation
            await publish_event(redis, "order_events", "OrderCreated", {"order_id": "o-1"})
            message = await pubsub.get_message(timeout=1)
            await pubsub.aclose()
            return message

        message = asyncio.run(scenario())
        assert json.loads(message["data"]) == {
            "event_type": "OrderCreated",
            "data": {"order_id": "o-1"},
        }

    def test_failure_is_swallowed(self):
        redis = UnreachableRedis()
        asyncio.run(publish_event(redis, "order_events", "OrderCreated", {}))
        assert redis.channels == ["order_events"]


class TestBrokerDown:
    def test_order_created_without_broker(self, tmp_path, catalog):
        redis = UnreachableRedis()
        settings = OrderSettings(
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}",
            product_service_url="http://products",
            payment_service_url="http://payments",
            notification_service_url="http://notifications",
        )
        app = create_order_app(settings, redis=redis, transport=catalog.transport)
        with TestClient(app) as client:
            response = client.post(
                "/orders",
                json={
                    "user_id": "user-1",
                    "items": [{"product_id": "espresso", "quantity": 1}],
                    "delivery_address": "1 Bean Street",
                },
            )
            assert response.status_code == 201
            order = response.json()
            assert client.get(f"/orders/{order['id']}").json()["status"] == "pending"

        assert redis.channels == ["order_events"]
        # the payment trigger still goes out after the failed publish
        assert len(catalog.calls_to("payments")) == 1

    def test_payment_processed_without_broker(self, tmp_path, downstream):
        redis = UnreachableRedis()
        settings = PaymentSettings(
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}",
            order_service_url="http://orders",
            processing_delay=0,
        )
        app = create_payment_app(
            settings,
            settler=FixedSettlement(success=True),
            redis=redis,
            transport=downstream.transport,
        )
        with TestClient(app) as client:
            response = client.post(
                "/payments",
                json={"order_id": "order-1", "user_id": "user-1", "amount": 2.99},
            )
            assert response.status_code == 201
            stored = client.get(f"/payments/{response.json()['id']}").json()
            assert stored["status"] == "completed"

        assert redis.channels == ["payment_events"] * 3
        assert downstream.calls_to("orders")[0]["json"] == {"payment_status": "completed"}
