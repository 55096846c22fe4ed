from hedgeterminal.core.orders.models import (
    OrderDraft,
    OrderRequest,
    OrderResult,
    OrderSide,
    OrderType,
    SubmissionState,
    VerifiedOrder,
)
from hedgeterminal.core.orders.ports import EventBus, OrderChannelPort

__all__ = [
    "EventBus",
    "OrderChannelPort",
    "OrderDraft",
    "OrderRequest",
    "OrderResult",
    "OrderSide",
    "OrderType",
    "SubmissionState",
    "VerifiedOrder",
]
