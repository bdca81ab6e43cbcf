import dataclasses
import logging
import uuid
from typing import List, Optional

from .. import codec
from ..errors import SubscriptionNotFoundError
from ..executor import Row, Statement
from ..models import SearchSubscription
from .base import Repository

logger = logging.getLogger(__name__)

_COLUMNS = ("id, telegram_chat_id, from_place_id, from_place_name, to_place_id, "
            "to_place_name, departure_date, requested_seats, is_active, created_at, "
            "last_checked_at")

CREATE = """
DECLARE $id AS Utf8;
DECLARE $telegram_chat_id AS Int64;
DECLARE $from_place_id AS Utf8;
DECLARE $from_place_name AS Utf8;
DECLARE $to_place_id AS Utf8;
DECLARE $to_place_name AS Utf8;
DECLARE $departure_date AS Utf8;
DECLARE $requested_seats AS Int32;
DECLARE $is_active AS Bool;
DECLARE $created_at AS Datetime;
DECLARE $last_checked_at AS Optional<Datetime>;

INSERT INTO search_subscriptions (id, telegram_chat_id, from_place_id, from_place_name,
                                  to_place_id, to_place_name, departure_date,
                                  requested_seats, is_active, created_at, last_checked_at)
VALUES ($id, $telegram_chat_id, $from_place_id, $from_place_name,
        $to_place_id, $to_place_name, $departure_date,
        $requested_seats, $is_active, $created_at, $last_checked_at);
"""

GET = f"""
DECLARE $id AS Utf8;

SELECT {_COLUMNS}
FROM search_subscriptions
WHERE id = $id;
"""

LIST_BY_USER = f"""
DECLARE $telegram_chat_id AS Int64;

SELECT {_COLUMNS}
FROM search_subscriptions
WHERE telegram_chat_id = $telegram_chat_id
ORDER BY created_at, id;
"""

LIST_ACTIVE = f"""
SELECT {_COLUMNS}
FROM search_subscriptions
WHERE is_active = true
ORDER BY created_at, id;
"""

# last_checked_at never moves backwards, even with skewed clocks
TOUCH_LAST_CHECKED = """
DECLARE $id AS Utf8;
DECLARE $last_checked_at AS Datetime;

UPDATE search_subscriptions
SET last_checked_at = $last_checked_at
WHERE id = $id
  AND (last_checked_at IS NULL OR last_checked_at < $last_checked_at);
"""

SET_ACTIVE = """
DECLARE $id AS Utf8;
DECLARE $is_active AS Bool;

UPDATE search_subscriptions
SET is_active = $is_active
WHERE id = $id;
"""

DELETE = """
DECLARE $id AS Utf8;

DELETE FROM search_subscriptions
WHERE id = $id;
"""


def decode_subscription(row: Row) -> SearchSubscription:
    return SearchSubscription(
        id=row["id"],
        chat_id=row["telegram_chat_id"],
        from_place_id=row["from_place_id"],
        from_place_name=row["from_place_name"],
        to_place_id=row["to_place_id"],
        to_place_name=row["to_place_name"],
        departure_date=row["departure_date"],
        requested_seats=row["requested_seats"],
        is_active=row["is_active"],
        created_at=codec.decode_datetime(row["created_at"]),
        last_checked_at=codec.decode_optional_datetime(row["last_checked_at"]),
    )


class SubscriptionRepository(Repository):
    """Trip search subscriptions"""

    def create(self, subscription: SearchSubscription, *,
               timeout: Optional[float] = None) -> SearchSubscription:
        """Create a subscription.

        A missing id is generated. The stored row is always active, created
        now and never checked, whatever the caller passed in.

        Returns:
            The subscription as it was written
        """
        if subscription.requested_seats < 1:
            raise ValueError(f"requested_seats must be >= 1, got {subscription.requested_seats}")

        created = dataclasses.replace(
            subscription,
            id=subscription.id or str(uuid.uuid4()),
            is_active=True,
            created_at=codec.utcnow(),
            last_checked_at=None,
        )
        statement = Statement(
            "subscriptions.create",
            CREATE,
            {
                "$id": codec.utf8(created.id),
                "$telegram_chat_id": codec.int64(created.chat_id),
                "$from_place_id": codec.utf8(created.from_place_id),
                "$from_place_name": codec.utf8(created.from_place_name),
                "$to_place_id": codec.utf8(created.to_place_id),
                "$to_place_name": codec.utf8(created.to_place_name),
                "$departure_date": codec.utf8(created.departure_date),
                "$requested_seats": codec.int32(created.requested_seats),
                "$is_active": codec.boolean(created.is_active),
                "$created_at": codec.timestamp(created.created_at),
                "$last_checked_at": codec.optional_timestamp(created.last_checked_at),
            },
            {"id": created.id, "chat_id": created.chat_id},
        )
        logger.debug(
            f"[YDB] create subscription {created.id} for chat {created.chat_id}: "
            f"{created.from_place_name} -> {created.to_place_name} on {created.departure_date}"
        )
        self._execute(statement, timeout)
        return created

    def get(self, subscription_id: str, *, timeout: Optional[float] = None) -> SearchSubscription:
        """Get subscription by id, raises SubscriptionNotFoundError if absent"""
        statement = Statement(
            "subscriptions.get",
            GET,
            {"$id": codec.utf8(subscription_id)},
            {"id": subscription_id},
        )
        return self._get_one(
            statement, decode_subscription, SubscriptionNotFoundError(subscription_id), timeout
        )

    def list_by_user(self, chat_id: int, *,
                     timeout: Optional[float] = None) -> List[SearchSubscription]:
        """All subscriptions of a chat, oldest first"""
        statement = Statement(
            "subscriptions.list_by_user",
            LIST_BY_USER,
            {"$telegram_chat_id": codec.int64(chat_id)},
            {"chat_id": chat_id},
        )
        return self._list(statement, decode_subscription, timeout)

    def list_active(self, *, timeout: Optional[float] = None) -> List[SearchSubscription]:
        """All active subscriptions, oldest first"""
        statement = Statement("subscriptions.list_active", LIST_ACTIVE)
        return self._list(statement, decode_subscription, timeout)

    def touch_last_checked(self, subscription_id: str, *,
                           timeout: Optional[float] = None) -> None:
        """Set last_checked_at to now"""
        statement = Statement(
            "subscriptions.touch_last_checked",
            TOUCH_LAST_CHECKED,
            {
                "$id": codec.utf8(subscription_id),
                "$last_checked_at": codec.timestamp(codec.utcnow()),
            },
            {"id": subscription_id},
        )
        self._execute(statement, timeout)

    def set_active(self, subscription_id: str, active: bool, *,
                   timeout: Optional[float] = None) -> None:
        statement = Statement(
            "subscriptions.set_active",
            SET_ACTIVE,
            {
                "$id": codec.utf8(subscription_id),
                "$is_active": codec.boolean(active),
            },
            {"id": subscription_id, "active": active},
        )
        self._execute(statement, timeout)

    def delete(self, subscription_id: str, *, timeout: Optional[float] = None) -> None:
        """Delete a subscription, no-op if it does not exist"""
        statement = Statement(
            "subscriptions.delete",
            DELETE,
            {"$id": codec.utf8(subscription_id)},
            {"id": subscription_id},
        )
        self._execute(statement, timeout)
