"""
Order Service — FastAPI エントリーポイント

CQRS パターンに従い、Command (POST/PATCH) と Query (GET) の処理を分離。
Event Sourcing により、すべての状態変更をイベントとして記録する。

  フロー:
  ┌─────────────────────────────────────────────────────────┐
  │  1. Product Service で全明細を検証 (同期)                │
  │  2. 注文を pending で保存してレスポンスを返す            │
  │  3. Payment Service に決済を依頼 (バックグラウンド)      │
  │  4. Payment Service から決済結果のコールバックを受ける   │
  │     └─ completed かつ pending → confirmed に遷移して通知 │
  └─────────────────────────────────────────────────────────┘
"""

from contextlib import asynccontextmanager

import httpx
import redis.asyncio as aioredis
import uvicorn
from fastapi import APIRouter, BackgroundTasks, FastAPI, Request
from pydantic import BaseModel, Field

from ..common import event_store
from ..common.db import create_engine, create_session_factory, create_tables
from ..common.errors import NotFoundError, install_error_handlers
from ..common.logging import configure_logging
from ..common.publisher import connect as connect_redis
from . import commands, queries
from .aggregate import OrderStatus, PaymentStatus
from .config import Settings
from .downstream import CatalogClient, NotificationSink, PaymentGateway
from .schema import metadata

router = APIRouter()


# ── Request Models ───────────────────────────────

class OrderItemRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class CreateOrderRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    items: list[OrderItemRequest] = Field(..., min_length=1)
    delivery_address: str = Field(..., min_length=1)
    instructions: str | None = None


class UpdateStatusRequest(BaseModel):
    status: OrderStatus


class PaymentCallbackRequest(BaseModel):
    payment_status: PaymentStatus


class CancelRequest(BaseModel):
    reason: str = "Cancelled by customer"


# ── Command Endpoints (Write 側) ─────────────────

@router.post("/orders", status_code=201)
async def cmd_create_order(
    req: CreateOrderRequest, request: Request, background: BackgroundTasks
):
    """注文作成コマンド — 決済の完了を待たずに返す"""
    state = request.app.state
    async with state.session_factory() as session:
        agg = await commands.create_order(
            session, state.redis,
            state.catalog, state.payments, background,
            req.user_id,
            [(item.product_id, item.quantity) for item in req.items],
            req.delivery_address,
            req.instructions,
        )
        return agg.to_dict()


@router.patch("/orders/{order_id}/status")
async def cmd_update_status(
    order_id: str, req: UpdateStatusRequest, request: Request, background: BackgroundTasks
):
    """注文状態の更新コマンド（オペレーター操作・通知あり）"""
    state = request.app.state
    async with state.session_factory() as session:
        agg = await commands.update_status(
            session, state.redis, state.notifier, background, order_id, req.status
        )
        return agg.to_dict()


@router.patch("/orders/{order_id}/payment")
async def cmd_apply_payment_status(
    order_id: str, req: PaymentCallbackRequest, request: Request, background: BackgroundTasks
):
    """決済状態コールバック（Payment Service から呼ばれる）"""
    state = request.app.state
    async with state.session_factory() as session:
        agg = await commands.apply_payment_status(
            session, state.redis, state.notifier, background, order_id, req.payment_status
        )
        return agg.to_dict()


@router.post("/orders/{order_id}/cancel")
async def cmd_cancel_order(
    order_id: str,
    request: Request,
    background: BackgroundTasks,
    req: CancelRequest | None = None,
):
    """注文キャンセルコマンド"""
    state = request.app.state
    reason = req.reason if req else CancelRequest().reason
    async with state.session_factory() as session:
        agg = await commands.cancel_order(
            session, state.redis, background, order_id, reason
        )
        return agg.to_dict()


# ── Query Endpoints (Read 側) ────────────────────

@router.get("/orders")
async def query_list_orders(request: Request, user: str | None = None):
    """注文一覧を新しい順に取得（user 指定で利用者ごと）"""
    async with request.app.state.session_factory() as session:
        return await queries.list_orders(session, user)


@router.get("/orders/{order_id}")
async def query_get_order(order_id: str, request: Request):
    """指定注文をリードモデルから取得"""
    async with request.app.state.session_factory() as session:
        order = await queries.get_order(session, order_id)
        if not order:
            raise NotFoundError("Order", order_id)
        return order


# ── Event Store (デバッグ用) ─────────────────────

@router.get("/events")
async def get_all_events(request: Request):
    """イベントストアの全イベントを返す"""
    async with request.app.state.session_factory() as session:
        return await event_store.load_all_events(session)


@router.get("/events/{aggregate_id}")
async def get_aggregate_events(aggregate_id: str, request: Request):
    """指定集約のイベントを返す"""
    async with request.app.state.session_factory() as session:
        return await event_store.load_events(session, aggregate_id)


@router.get("/health")
async def health():
    return {"status": "ok", "service": "order-service"}


# ── Application Factory ──────────────────────────

def create_app(
    settings: Settings | None = None,
    *,
    redis: aioredis.Redis | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    設定を受け取ってアプリケーションを組み立てる。

    redis / transport はテスト時に差し替えるためのもの。
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        engine = create_engine(settings.database_url)
        await create_tables(engine, metadata)
        redis_conn = redis if redis is not None else connect_redis(
            settings.redis_url, settings.redis_timeout
        )
        http_client = httpx.AsyncClient(timeout=settings.http_timeout, transport=transport)

        app.state.session_factory = create_session_factory(engine)
        app.state.redis = redis_conn
        app.state.catalog = CatalogClient(http_client, settings.product_service_url)
        app.state.payments = PaymentGateway(http_client, settings.payment_service_url)
        app.state.notifier = NotificationSink(http_client, settings.notification_service_url)
        yield
        await http_client.aclose()
        if redis is None:
            await redis_conn.aclose()
        await engine.dispose()

    app = FastAPI(title="Order Service", lifespan=lifespan)
    app.state.settings = settings
    install_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
