"""
Payment Service — FastAPI エントリーポイント

決済シミュレーター。CQRS + Event Sourcing パターン。
決済受付は即座に processing で返し、結果の確定と
Order Service へのコールバックはバックグラウンドで行う。
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
from .aggregate import PaymentMethod
from .config import Settings
from .processor import OrderCallbackClient, PaymentProcessor
from .schema import metadata
from .settlement import RandomSettlement, SettlementDecision

router = APIRouter()


# ── Request Models ───────────────────────────────


class CreatePaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    method: PaymentMethod = PaymentMethod.CARD


# ── Command Endpoints (Write 側) ─────────────────


@router.post("/payments", status_code=201)
async def cmd_create_payment(
    req: CreatePaymentRequest, request: Request, background: BackgroundTasks
):
    """決済受付コマンド — 結果はバックグラウンドで確定する"""
    state = request.app.state
    async with state.session_factory() as session:
        agg = await commands.create_payment(
            session, state.redis, background,
            req.order_id, req.user_id, req.amount, req.method,
        )
    background.add_task(state.processor.process, agg.id)
    return agg.to_dict()


@router.post("/payments/{payment_id}/refund")
async def cmd_refund_payment(
    payment_id: str, request: Request, background: BackgroundTasks
):
    """返金コマンド — Order Service にも refunded を伝える"""
    state = request.app.state
    async with state.session_factory() as session:
        agg = await commands.refund_payment(session, state.redis, background, payment_id)
    background.add_task(state.callback.report, agg.order_id, agg.status.value)
    return agg.to_dict()


# ── Query Endpoints (Read 側) ────────────────────


@router.get("/payments")
async def query_list_payments(request: Request, user: str | None = None):
    async with request.app.state.session_factory() as session:
        return await queries.list_payments(session, user)


@router.get("/payments/by-order/{order_id}")
async def query_payment_by_order(order_id: str, request: Request):
    async with request.app.state.session_factory() as session:
        payment = await queries.get_payment_by_order(session, order_id)
        if not payment:
            raise NotFoundError("Payment for order", order_id)
        return payment


@router.get("/payments/{payment_id}")
async def query_get_payment(payment_id: str, request: Request):
    async with request.app.state.session_factory() as session:
        payment = await queries.get_payment(session, payment_id)
        if not payment:
            raise NotFoundError("Payment", payment_id)
        return payment


# ── Event Store (デバッグ用) ─────────────────────


@router.get("/events")
async def get_all_events(request: Request):
    async with request.app.state.session_factory() as session:
        return await event_store.load_all_events(session)


@router.get("/events/{aggregate_id}")
async def get_aggregate_events(aggregate_id: str, request: Request):
    async with request.app.state.session_factory() as session:
        return await event_store.load_events(session, aggregate_id)


@router.get("/health")
async def health():
    return {"status": "ok", "service": "payment-service"}


# ── Application Factory ──────────────────────────


def create_app(
    settings: Settings | None = None,
    *,
    settler: SettlementDecision | None = None,
    redis: aioredis.Redis | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    設定を受け取ってアプリケーションを組み立てる。

    settler を渡すと決済結果の判定を差し替えられる (テスト用)。
    """
    settings = settings or Settings.from_env()
    settler = settler or RandomSettlement(settings.success_rate)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        engine = create_engine(settings.database_url)
        await create_tables(engine, metadata)
        redis_conn = redis if redis is not None else connect_redis(
            settings.redis_url, settings.redis_timeout
        )
        http_client = httpx.AsyncClient(timeout=settings.http_timeout, transport=transport)

        session_factory = create_session_factory(engine)
        callback = OrderCallbackClient(http_client, settings.order_service_url)
        app.state.session_factory = session_factory
        app.state.redis = redis_conn
        app.state.callback = callback
        app.state.processor = PaymentProcessor(
            session_factory, redis_conn, settler, callback, settings.processing_delay
        )
        yield
        await http_client.aclose()
        if redis is None:
            await redis_conn.aclose()
        await engine.dispose()

    app = FastAPI(title="Payment Service", lifespan=lifespan)
    app.state.settings = settings
    install_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
