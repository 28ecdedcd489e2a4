"""
Order Service — イベント定義

Event Sourcing では、ドメインで発生した事実(イベント)を定義する。
イベントは過去形で命名し、不変(immutable)として扱う。
"""

from pydantic import BaseModel, Field


class LineItem(BaseModel):
    """注文明細 — 価格は注文時点のスナップショット"""
    product_id: str
    name: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class OrderCreated(BaseModel):
    """注文が作成された"""
    order_id: str
    user_id: str
    items: list[LineItem]
    total_amount: float
    delivery_address: str
    instructions: str | None = None
    timestamp: str


class OrderStatusChanged(BaseModel):
    """オペレーターが注文状態を直接変更した"""
    order_id: str
    status: str
    previous_status: str
    timestamp: str


class OrderPaymentConfirmed(BaseModel):
    """決済完了により注文が確定された (payment_status と status を同時に更新)"""
    order_id: str
    timestamp: str


class PaymentStatusRecorded(BaseModel):
    """決済状態だけが更新された (注文状態は変えない)"""
    order_id: str
    payment_status: str
    timestamp: str


class OrderCancelled(BaseModel):
    """注文がキャンセルされた"""
    order_id: str
    reason: str
    timestamp: str
