"""
Data models for broadcast requests, subscriptions and delivery outcomes
"""

from .schemas import (
    DeliveryOutcome,
    DispatchResult,
    DispatchTrigger,
    MulticastResult,
    NotificationRequest,
    RequestStatus,
    Subscription,
)

__all__ = [
    "DeliveryOutcome",
    "DispatchResult",
    "DispatchTrigger",
    "MulticastResult",
    "NotificationRequest",
    "RequestStatus",
    "Subscription",
]
