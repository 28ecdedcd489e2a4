"""
Payment Service — 決済結果の判定

実際の決済ゲートウェイの代わりに、成功/失敗を決める。
判定ロジックは差し替え可能で、テストでは FixedSettlement を使う。
"""

import random
import time
from typing import Protocol
from uuid import uuid4

from pydantic import BaseModel

FAILURE_REASON = "Insufficient funds"


class SettlementOutcome(BaseModel):
    success: bool
    failure_reason: str | None = None


class SettlementDecision(Protocol):
    def decide(self, order_id: str, amount: float) -> SettlementOutcome: ...


class RandomSettlement:
    """success_rate の確率で成功する (デフォルト 95%)。"""

    def __init__(self, success_rate: float = 0.95, rng: random.Random | None = None):
        self.success_rate = success_rate
        self.rng = rng or random.Random()

    def decide(self, order_id: str, amount: float) -> SettlementOutcome:
        if self.rng.random() < self.success_rate:
            return SettlementOutcome(success=True)
        return SettlementOutcome(success=False, failure_reason=FAILURE_REASON)


class FixedSettlement:
    """常に同じ結果を返す。"""

    def __init__(self, success: bool, failure_reason: str = FAILURE_REASON):
        self.success = success
        self.failure_reason = failure_reason

    def decide(self, order_id: str, amount: float) -> SettlementOutcome:
        if self.success:
            return SettlementOutcome(success=True)
        return SettlementOutcome(success=False, failure_reason=self.failure_reason)


def new_transaction_id() -> str:
    """TXN + ミリ秒 + ランダム 9 文字"""
    return f"TXN{int(time.time() * 1000)}{uuid4().hex[:9].upper()}"
