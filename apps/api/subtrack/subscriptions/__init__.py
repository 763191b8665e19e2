from subtrack.subscriptions.api import router
from subtrack.subscriptions.errors import (
    InvalidDateFormatError,
    StorageError,
    SubscriptionError,
    SubscriptionNotFoundError,
)
from subtrack.subscriptions.models import Subscription
from subtrack.subscriptions.repository import CostFilter
from subtrack.subscriptions.schemas import SubscriptionPayload, SubscriptionRead
from subtrack.subscriptions.service import SubscriptionStore

__all__ = [
    "router",
    "Subscription",
    "SubscriptionPayload",
    "SubscriptionRead",
    "CostFilter",
    "SubscriptionStore",
    "SubscriptionError",
    "SubscriptionNotFoundError",
    "InvalidDateFormatError",
    "StorageError",
]
