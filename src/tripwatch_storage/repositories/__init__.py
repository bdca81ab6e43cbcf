from .base import Repository
from .notifications import NotificationRepository
from .subscriptions import SubscriptionRepository
from .tokens import TokenRepository
from .users import UserRepository

__all__ = [
    "Repository",
    "UserRepository",
    "TokenRepository",
    "SubscriptionRepository",
    "NotificationRepository",
]
