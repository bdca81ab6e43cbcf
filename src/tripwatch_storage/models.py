from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class UserStatus(str, Enum):
    """User lifecycle status"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    UNAUTHENTICATED = "unauthenticated"


# Status every notification record starts with
NOTIFICATION_STATUS_SENT = "sent"


@dataclass
class User:
    """Telegram user model"""
    chat_id: int
    status: UserStatus
    created_at: datetime
    last_auth_success_at: Optional[datetime] = None
    last_auth_failure_at: Optional[datetime] = None


@dataclass
class UserTokens:
    """BlaBlaCar session tokens of a user.

    ``datadome`` and ``app_token`` are optional, an empty string means the
    token is absent.
    """
    chat_id: int
    access_token: str
    refresh_token: str
    user_id: str
    datadome: str = ""
    app_token: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class SearchSubscription:
    """Trip search a user asked us to watch"""
    chat_id: int
    from_place_id: str
    from_place_name: str
    to_place_id: str
    to_place_name: str
    departure_date: str  # YYYY-MM-DD
    requested_seats: int = 1
    id: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None


@dataclass
class TripInfo:
    """Trip found by a search, passed to the notifier but never stored"""
    id: str
    from_place_name: str
    to_place_name: str
    departure_time: str
    arrival_time: str
    duration: str
    price: str
    seats_available: int
    deep_link: str
    driver_name: str = ""
    driver_rating: float = 0.0
    is_bus: bool = False


@dataclass
class Notification:
    """Notification record to prevent duplicates"""
    chat_id: int
    subscription_id: str
    trip_id: str
    message_id: int = 0
    id: str = ""
    status: str = NOTIFICATION_STATUS_SENT
    created_at: Optional[datetime] = None

    @classmethod
    def for_trip(cls, chat_id: int, subscription_id: str, trip: TripInfo,
                 message_id: int = 0) -> "Notification":
        """Build the dedup record for a trip delivered to a chat"""
        return cls(
            chat_id=chat_id,
            subscription_id=subscription_id,
            trip_id=trip.id,
            message_id=message_id,
        )
