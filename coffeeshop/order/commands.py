"""
Order Service — コマンドハンドラ (CQRS の Write 側)

コマンドは状態を変更する操作で、イベントを生成してストアに保存する。
同じトランザクションでリードモデルも更新する。
イベント追記時のバージョンチェックにより、1つの注文に対する
読み取り→変更→書き込みはアトミックになる。

Redis への発行と外部サービスへの副作用 (決済依頼・通知) はコミット後に
BackgroundTasks に積み、レスポンス返却後に実行する。
"""

import json
import logging
from uuid import uuid4

import redis.asyncio as aioredis
from fastapi import BackgroundTasks
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ..common import event_store
from ..common.db import utcnow
from ..common.errors import DownstreamUnavailable, NotFoundError, ValidationError
from ..common.publisher import publish_event
from .aggregate import (
    CALLBACK_PAYMENT_STATUSES,
    OrderAggregate,
    OrderStatus,
    PaymentStatus,
    calculate_total,
)
from .downstream import CatalogClient, NotificationSink, PaymentGateway
from .events import (
    LineItem,
    OrderCancelled,
    OrderCreated,
    OrderPaymentConfirmed,
    OrderStatusChanged,
    PaymentStatusRecorded,
)

logger = logging.getLogger(__name__)

CHANNEL = "order_events"


def _short_id(order_id: str) -> str:
    return order_id[-6:]


async def _load(session: AsyncSession, order_id: str) -> OrderAggregate:
    events = await event_store.load_events(session, order_id)
    agg = OrderAggregate.from_events(events)
    if not agg.exists:
        raise NotFoundError("Order", order_id)
    return agg


async def _record(
    session: AsyncSession,
    agg: OrderAggregate,
    event_type: str,
    event_data: dict,
) -> None:
    """イベントを追記し、集約に適用してリードモデルへ反映する。"""
    agg.version = await event_store.append_event(
        session, agg.id, "Order", event_type, event_data, agg.version
    )
    agg.apply_event(event_type, event_data)
    await session.execute(
        text("""
            UPDATE orders_read_model
            SET status = :status, payment_status = :payment_status, updated_at = :now
            WHERE id = :id
        """),
        {
            "id": agg.id,
            "status": agg.status.value,
            "payment_status": agg.payment_status.value,
            "now": agg.updated_at,
        },
    )


async def create_order(
    session: AsyncSession,
    redis: aioredis.Redis,
    catalog: CatalogClient,
    payments: PaymentGateway,
    background: BackgroundTasks,
    user_id: str,
    items: list[tuple[str, int]],
    delivery_address: str,
    instructions: str | None = None,
) -> OrderAggregate:
    """
    注文作成コマンド

    1. 全明細をカタログで検証 (1件でも失敗したら何も保存しない)
    2. 価格をスナップショットして合計金額を計算
    3. OrderCreated イベントを保存し、リードモデルを作成
    4. Redis Pub/Sub への発行と決済依頼をバックグラウンドに積む
       (どちらが失敗しても注文は残る)
    """
    if not items:
        raise ValidationError("Order must contain at least one item")

    line_items: list[dict] = []
    for product_id, quantity in items:
        if quantity < 1:
            raise ValidationError(f"Invalid quantity for product {product_id}: {quantity}")
        try:
            product = await catalog.lookup(product_id)
        except DownstreamUnavailable as e:
            logger.warning("Product fetch error for %s: %s", product_id, e)
            raise ValidationError(f"Invalid product: {product_id}") from e
        if product is None:
            raise ValidationError(f"Invalid product: {product_id}")
        if not product.available:
            raise ValidationError(f"{product.name} is not available")
        line_items.append(
            LineItem(
                product_id=product_id,
                name=product.name,
                quantity=quantity,
                price=product.price,
            ).model_dump()
        )

    order_id = str(uuid4())
    now = utcnow()
    event_data = OrderCreated(
        order_id=order_id,
        user_id=user_id,
        items=line_items,
        total_amount=calculate_total(line_items),
        delivery_address=delivery_address,
        instructions=instructions,
        timestamp=now,
    ).model_dump()

    # 1. イベントストアに追記
    version = await event_store.append_event(
        session, order_id, "Order", "OrderCreated", event_data, 0
    )

    # 2. リードモデルを作成
    await session.execute(
        text("""
            INSERT INTO orders_read_model
                (id, user_id, items, total_amount, status, payment_status,
                 delivery_address, instructions, created_at, updated_at)
            VALUES
                (:id, :user_id, :items, :total_amount, 'pending', 'pending',
                 :delivery_address, :instructions, :now, :now)
        """),
        {
            "id": order_id,
            "user_id": user_id,
            "items": json.dumps(line_items),
            "total_amount": event_data["total_amount"],
            "delivery_address": delivery_address,
            "instructions": instructions,
            "now": now,
        },
    )

    await session.commit()
    logger.info("Order %s created for user %s", order_id, user_id)

    background.add_task(publish_event, redis, CHANNEL, "OrderCreated", event_data)

    background.add_task(
        payments.request_charge, order_id, user_id, event_data["total_amount"]
    )

    agg = OrderAggregate()
    agg.apply_order_created(event_data)
    agg.version = version
    return agg


async def update_status(
    session: AsyncSession,
    redis: aioredis.Redis,
    notifier: NotificationSink,
    background: BackgroundTasks,
    order_id: str,
    status: OrderStatus,
) -> OrderAggregate:
    """
    注文状態の直接更新コマンド (オペレーター操作)

    状態は無条件で上書きし、必ず注文者へ通知する。
    """
    agg = await _load(session, order_id)
    event_data = OrderStatusChanged(
        order_id=order_id,
        status=status.value,
        previous_status=agg.status.value,
        timestamp=utcnow(),
    ).model_dump()

    await _record(session, agg, "OrderStatusChanged", event_data)
    await session.commit()
    logger.info("Order %s status %s -> %s", order_id, event_data["previous_status"], status.value)

    background.add_task(publish_event, redis, CHANNEL, "OrderStatusChanged", event_data)

    background.add_task(
        notifier.notify,
        agg.user_id,
        f"Your order #{_short_id(order_id)} is now {status.value}",
        "order_update",
        order_id,
    )
    return agg


async def apply_payment_status(
    session: AsyncSession,
    redis: aioredis.Redis,
    notifier: NotificationSink,
    background: BackgroundTasks,
    order_id: str,
    payment_status: PaymentStatus,
) -> OrderAggregate:
    """
    決済状態コールバックの反映 (Payment Service から呼ばれる)

    - completed かつ注文が pending → 決済状態と注文状態を同時に更新し通知
    - それ以外 → 決済状態だけを更新 (failed の場合は通知する)
    - pending は決済結果ではないので受け付けない
    """
    if payment_status not in CALLBACK_PAYMENT_STATUSES:
        raise ValidationError(f"Invalid payment status: {payment_status.value}")

    agg = await _load(session, order_id)
    if not agg.is_expected_payment_transition(payment_status):
        logger.warning(
            "Unexpected payment transition %s -> %s for order %s",
            agg.payment_status.value, payment_status.value, order_id,
        )

    event_type = agg.decide_payment_update(payment_status)
    now = utcnow()
    if event_type == "OrderPaymentConfirmed":
        event_data = OrderPaymentConfirmed(order_id=order_id, timestamp=now).model_dump()
    else:
        event_data = PaymentStatusRecorded(
            order_id=order_id, payment_status=payment_status.value, timestamp=now
        ).model_dump()

    await _record(session, agg, event_type, event_data)
    await session.commit()
    logger.info("Order %s payment status -> %s", order_id, payment_status.value)

    background.add_task(publish_event, redis, CHANNEL, event_type, event_data)

    if event_type == "OrderPaymentConfirmed":
        background.add_task(
            notifier.notify,
            agg.user_id,
            f"Payment confirmed for order #{_short_id(order_id)}",
            "payment_success",
            order_id,
        )
    elif payment_status == PaymentStatus.FAILED:
        background.add_task(
            notifier.notify,
            agg.user_id,
            f"Payment failed for order #{_short_id(order_id)}",
            "payment_failed",
            order_id,
        )
    return agg


async def cancel_order(
    session: AsyncSession,
    redis: aioredis.Redis,
    background: BackgroundTasks,
    order_id: str,
    reason: str,
) -> OrderAggregate:
    """
    注文キャンセルコマンド

    pending / confirmed 以外の注文はキャンセルできない。
    """
    agg = await _load(session, order_id)
    agg.ensure_cancellable()

    event_data = OrderCancelled(
        order_id=order_id, reason=reason, timestamp=utcnow()
    ).model_dump()

    await _record(session, agg, "OrderCancelled", event_data)
    await session.commit()
    logger.info("Order %s cancelled", order_id)

    background.add_task(publish_event, redis, CHANNEL, "OrderCancelled", event_data)
    return agg
