"""
Payment Service — コマンドハンドラ (CQRS Write 側)

決済の受付 (create)、結果の確定 (resolve)、返金 (refund) を処理する。
Payment Service は注文レコードを直接書き換えない。結果は
コールバックで Order Service に伝える。
"""

import logging
from uuid import uuid4

import redis.asyncio as aioredis
from fastapi import BackgroundTasks
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..common import event_store
from ..common.db import utcnow
from ..common.errors import NotFoundError, ValidationError
from ..common.publisher import publish_event
from . import queries
from .aggregate import PaymentAggregate, PaymentMethod, PaymentStatus
from .events import (
    PaymentCompleted,
    PaymentFailed,
    PaymentInitiated,
    PaymentProcessingStarted,
    PaymentRefunded,
)
from .settlement import FAILURE_REASON, SettlementDecision, new_transaction_id

logger = logging.getLogger(__name__)

CHANNEL = "payment_events"


async def _load(session: AsyncSession, payment_id: str) -> PaymentAggregate:
    events = await event_store.load_events(session, payment_id)
    agg = PaymentAggregate.from_events(events)
    if not agg.exists:
        raise NotFoundError("Payment", payment_id)
    return agg


async def _record(
    session: AsyncSession,
    agg: PaymentAggregate,
    event_type: str,
    event_data: dict,
) -> None:
    """イベントを追記し、集約に適用してリードモデルへ反映する。"""
    agg.version = await event_store.append_event(
        session, agg.id, "Payment", event_type, event_data, agg.version
    )
    agg.apply_event(event_type, event_data)
    await session.execute(
        text("""
            UPDATE payments_read_model
            SET status = :status,
                transaction_id = :transaction_id,
                failure_reason = :failure_reason,
                completed_at = :completed_at,
                refunded_at = :refunded_at
            WHERE id = :id
        """),
        {
            "id": agg.id,
            "status": agg.status.value,
            "transaction_id": agg.transaction_id,
            "failure_reason": agg.failure_reason,
            "completed_at": agg.completed_at,
            "refunded_at": agg.refunded_at,
        },
    )


async def create_payment(
    session: AsyncSession,
    redis: aioredis.Redis,
    background: BackgroundTasks,
    order_id: str,
    user_id: str,
    amount: float,
    method: PaymentMethod = PaymentMethod.CARD,
) -> PaymentAggregate:
    """
    決済受付コマンド

    1. 同じ注文に有効な決済 (failed 以外) があれば拒否
    2. PaymentInitiated → PaymentProcessingStarted を同一トランザクションで記録
    3. リードモデルを processing で作成

    1 の事前チェックをすり抜けた同時リクエストは、リードモデルの
    部分 UNIQUE インデックス (uq_payments_active_order) で弾かれる。
    結果の確定は PaymentProcessor がバックグラウンドで行う。
    """
    existing = await queries.get_payment_by_order(session, order_id)
    if existing and existing["status"] != PaymentStatus.FAILED.value:
        raise ValidationError(f"Order {order_id} already has an active payment")

    payment_id = str(uuid4())
    now = utcnow()
    initiated = PaymentInitiated(
        payment_id=payment_id,
        order_id=order_id,
        user_id=user_id,
        amount=amount,
        method=method.value,
        timestamp=now,
    ).model_dump()
    started = PaymentProcessingStarted(payment_id=payment_id, timestamp=now).model_dump()

    agg = PaymentAggregate()
    agg.version = await event_store.append_event(
        session, payment_id, "Payment", "PaymentInitiated", initiated, 0
    )
    agg.apply_payment_initiated(initiated)
    agg.version = await event_store.append_event(
        session, payment_id, "Payment", "PaymentProcessingStarted", started, agg.version
    )
    agg.apply_payment_processing_started(started)

    try:
        await session.execute(
            text("""
                INSERT INTO payments_read_model
                    (id, order_id, user_id, amount, method, status, created_at)
                VALUES
                    (:id, :order_id, :user_id, :amount, :method, 'processing', :now)
            """),
            {
                "id": payment_id,
                "order_id": order_id,
                "user_id": user_id,
                "amount": amount,
                "method": method.value,
                "now": now,
            },
        )
    except IntegrityError as e:
        await session.rollback()
        logger.warning("Concurrent payment for order %s rejected", order_id)
        raise ValidationError(f"Order {order_id} already has an active payment") from e

    await session.commit()
    logger.info("Payment %s processing for order %s (%.2f)", payment_id, order_id, amount)

    background.add_task(publish_event, redis, CHANNEL, "PaymentInitiated", initiated)
    background.add_task(publish_event, redis, CHANNEL, "PaymentProcessingStarted", started)
    return agg


async def resolve_payment(
    session: AsyncSession,
    redis: aioredis.Redis,
    settler: SettlementDecision,
    payment_id: str,
) -> PaymentAggregate:
    """
    決済結果の確定

    processing の決済を completed か failed のどちらか一方に確定させる。
    PaymentProcessor からバックグラウンドで呼ばれるため、発行はここで待つ。
    """
    agg = await _load(session, payment_id)
    agg.ensure_resolvable()

    outcome = settler.decide(agg.order_id, agg.amount)
    now = utcnow()
    if outcome.success:
        event_type = "PaymentCompleted"
        event_data = PaymentCompleted(
            payment_id=payment_id,
            transaction_id=new_transaction_id(),
            timestamp=now,
        ).model_dump()
    else:
        event_type = "PaymentFailed"
        event_data = PaymentFailed(
            payment_id=payment_id,
            failure_reason=outcome.failure_reason or FAILURE_REASON,
            timestamp=now,
        ).model_dump()

    await _record(session, agg, event_type, event_data)
    await session.commit()
    logger.info("Payment %s %s", payment_id, agg.status.value)

    await publish_event(redis, CHANNEL, event_type, event_data)
    return agg


async def refund_payment(
    session: AsyncSession,
    redis: aioredis.Redis,
    background: BackgroundTasks,
    payment_id: str,
) -> PaymentAggregate:
    """返金コマンド — completed の決済だけが対象"""
    agg = await _load(session, payment_id)
    agg.ensure_refundable()

    event_data = PaymentRefunded(payment_id=payment_id, timestamp=utcnow()).model_dump()
    await _record(session, agg, "PaymentRefunded", event_data)
    await session.commit()
    logger.info("Payment %s refunded", payment_id)

    background.add_task(publish_event, redis, CHANNEL, "PaymentRefunded", event_data)
    return agg
