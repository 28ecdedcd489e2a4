"""
Payment Service — 決済集約 (Payment Aggregate)

イベントをリプレイして決済の現在の状態を復元する。
"""

from enum import Enum

from ..common.errors import InvalidStateError


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH = "cash"
    UPI = "upi"
    WALLET = "wallet"


class PaymentAggregate:
    """
    決済集約

    状態遷移:
        pending → processing → completed | failed
        completed → refunded

    transaction_id は completed に到達したときだけ、
    failure_reason は failed のときだけ設定される。
    """

    def __init__(self) -> None:
        self.id: str | None = None
        self.order_id: str = ""
        self.user_id: str = ""
        self.amount: float = 0
        self.method: PaymentMethod = PaymentMethod.CARD
        self.status: PaymentStatus = PaymentStatus.PENDING
        self.transaction_id: str | None = None
        self.failure_reason: str | None = None
        self.created_at: str | None = None
        self.completed_at: str | None = None
        self.refunded_at: str | None = None
        self.version: int = 0

    @property
    def exists(self) -> bool:
        return self.id is not None

    # ── イベント適用メソッド ──────────────────────────

    def apply_payment_initiated(self, data: dict) -> None:
        self.id = data["payment_id"]
        self.order_id = data["order_id"]
        self.user_id = data["user_id"]
        self.amount = data["amount"]
        self.method = PaymentMethod(data["method"])
        self.status = PaymentStatus.PENDING
        self.created_at = data["timestamp"]

    def apply_payment_processing_started(self, _data: dict) -> None:
        self.status = PaymentStatus.PROCESSING

    def apply_payment_completed(self, data: dict) -> None:
        self.status = PaymentStatus.COMPLETED
        self.transaction_id = data["transaction_id"]
        self.completed_at = data["timestamp"]

    def apply_payment_failed(self, data: dict) -> None:
        self.status = PaymentStatus.FAILED
        self.failure_reason = data["failure_reason"]

    def apply_payment_refunded(self, data: dict) -> None:
        self.status = PaymentStatus.REFUNDED
        self.refunded_at = data["timestamp"]

    # ── 状態遷移のガード ─────────────────────────────

    def ensure_resolvable(self) -> None:
        if self.status != PaymentStatus.PROCESSING:
            raise InvalidStateError("payment", self.status.value, "settle")

    def ensure_refundable(self) -> None:
        """返金できるのは completed の決済だけ。"""
        if self.status != PaymentStatus.COMPLETED:
            raise InvalidStateError("payment", self.status.value, "refund")

    # ── イベントリプレイ ─────────────────────────────

    def apply_event(self, event_type: str, event_data: dict) -> None:
        handler = {
            "PaymentInitiated": self.apply_payment_initiated,
            "PaymentProcessingStarted": self.apply_payment_processing_started,
            "PaymentCompleted": self.apply_payment_completed,
            "PaymentFailed": self.apply_payment_failed,
            "PaymentRefunded": self.apply_payment_refunded,
        }.get(event_type)
        if handler:
            handler(event_data)

    @classmethod
    def from_events(cls, events: list[dict]) -> "PaymentAggregate":
        agg = cls()
        for e in events:
            agg.apply_event(e["event_type"], e["event_data"])
            agg.version = e["version"]
        return agg

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "amount": self.amount,
            "method": self.method.value,
            "status": self.status.value,
            "transaction_id": self.transaction_id,
            "failure_reason": self.failure_reason,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "refunded_at": self.refunded_at,
        }
