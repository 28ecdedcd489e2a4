"""
Order Service — 注文集約 (Order Aggregate)

Event Sourcing では集約の状態を直接保存しない。
イベントをリプレイして現在の状態を復元する。

apply_xxx メソッド: 各イベントを適用して状態を変更する
ensure_xxx / decide_xxx メソッド: 状態遷移のガード
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from ..common.errors import InvalidStateError


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


CANCELLABLE_STATUSES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

# Payment Service から届く決済結果。pending はコールバックの対象外
CALLBACK_PAYMENT_STATUSES = {
    PaymentStatus.COMPLETED,
    PaymentStatus.FAILED,
    PaymentStatus.REFUNDED,
}

# 決済状態の想定される遷移 (これ以外も記録はするが警告を出す)
PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}


def calculate_total(items: list[dict]) -> float:
    """数量 × 単価の合計を Decimal で計算し、セント単位に丸める。"""
    total = sum(
        (Decimal(str(item["price"])) * item["quantity"] for item in items),
        Decimal("0"),
    )
    return float(total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class OrderAggregate:
    """
    注文集約 — イベントから現在の状態を再構築する。

    状態遷移 (status):
        pending → confirmed → preparing → ready → completed
        pending | confirmed → cancelled

    決済状態 (payment_status):
        pending → completed | failed
        completed → refunded
    """

    def __init__(self) -> None:
        self.id: str | None = None
        self.user_id: str = ""
        self.items: list[dict] = []
        self.total_amount: float = 0
        self.status: OrderStatus = OrderStatus.PENDING
        self.payment_status: PaymentStatus = PaymentStatus.PENDING
        self.delivery_address: str = ""
        self.instructions: str | None = None
        self.created_at: str | None = None
        self.updated_at: str | None = None
        self.version: int = 0

    @property
    def exists(self) -> bool:
        return self.id is not None

    # ── イベント適用メソッド ──────────────────────────

    def apply_order_created(self, data: dict) -> None:
        self.id = data["order_id"]
        self.user_id = data["user_id"]
        self.items = [dict(item) for item in data["items"]]
        self.total_amount = data["total_amount"]
        self.delivery_address = data["delivery_address"]
        self.instructions = data.get("instructions")
        self.status = OrderStatus.PENDING
        self.payment_status = PaymentStatus.PENDING
        self.created_at = data["timestamp"]
        self.updated_at = data["timestamp"]

    def apply_order_status_changed(self, data: dict) -> None:
        self.status = OrderStatus(data["status"])
        self.updated_at = data["timestamp"]

    def apply_order_payment_confirmed(self, data: dict) -> None:
        self.payment_status = PaymentStatus.COMPLETED
        self.status = OrderStatus.CONFIRMED
        self.updated_at = data["timestamp"]

    def apply_payment_status_recorded(self, data: dict) -> None:
        self.payment_status = PaymentStatus(data["payment_status"])
        self.updated_at = data["timestamp"]

    def apply_order_cancelled(self, data: dict) -> None:
        self.status = OrderStatus.CANCELLED
        self.updated_at = data["timestamp"]

    # ── 状態遷移のガード ─────────────────────────────

    def ensure_cancellable(self) -> None:
        """キャンセルは pending / confirmed からのみ可能。"""
        if self.status not in CANCELLABLE_STATUSES:
            raise InvalidStateError("order", self.status.value, "cancel")

    def decide_payment_update(self, incoming: PaymentStatus) -> str:
        """
        決済コールバックに対して記録すべきイベント種別を決める。

        completed かつ注文が pending のときだけ、決済状態と注文状態を
        同時に更新する (唯一の自動的な状態遷移)。
        """
        if incoming == PaymentStatus.COMPLETED and self.status == OrderStatus.PENDING:
            return "OrderPaymentConfirmed"
        return "PaymentStatusRecorded"

    def is_expected_payment_transition(self, incoming: PaymentStatus) -> bool:
        return incoming in PAYMENT_TRANSITIONS[self.payment_status]

    # ── イベントリプレイ ─────────────────────────────

    def apply_event(self, event_type: str, event_data: dict) -> None:
        """イベントタイプに応じた apply メソッドを呼び出す。"""
        handler = {
            "OrderCreated": self.apply_order_created,
            "OrderStatusChanged": self.apply_order_status_changed,
            "OrderPaymentConfirmed": self.apply_order_payment_confirmed,
            "PaymentStatusRecorded": self.apply_payment_status_recorded,
            "OrderCancelled": self.apply_order_cancelled,
        }.get(event_type)
        if handler:
            handler(event_data)

    @classmethod
    def from_events(cls, events: list[dict]) -> "OrderAggregate":
        """イベント列から集約を再構築する。"""
        agg = cls()
        for e in events:
            agg.apply_event(e["event_type"], e["event_data"])
            agg.version = e["version"]
        return agg

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "items": self.items,
            "total_amount": self.total_amount,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "delivery_address": self.delivery_address,
            "instructions": self.instructions,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
