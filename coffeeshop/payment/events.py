"""
Payment Service — イベント定義

イベントは過去形で命名し、不変(immutable)として扱う。
"""

from pydantic import BaseModel


class PaymentInitiated(BaseModel):
    """決済依頼を受け付けた"""
    payment_id: str
    order_id: str
    user_id: str
    amount: float
    method: str
    timestamp: str


class PaymentProcessingStarted(BaseModel):
    """決済処理を開始した"""
    payment_id: str
    timestamp: str


class PaymentCompleted(BaseModel):
    """決済が成功した"""
    payment_id: str
    transaction_id: str
    timestamp: str


class PaymentFailed(BaseModel):
    """決済が失敗した"""
    payment_id: str
    failure_reason: str
    timestamp: str


class PaymentRefunded(BaseModel):
    """返金された"""
    payment_id: str
    timestamp: str
