import dataclasses
import uuid
from typing import Optional

from .. import codec
from ..executor import Row, Statement
from ..models import NOTIFICATION_STATUS_SENT, Notification
from .base import Repository

_COLUMNS = ("id, telegram_chat_id, subscription_id, trip_id, "
            "telegram_message_id, status, created_at")

CREATE = f"""
DECLARE $id AS Utf8;
DECLARE $telegram_chat_id AS Int64;
DECLARE $subscription_id AS Utf8;
DECLARE $trip_id AS Utf8;
DECLARE $telegram_message_id AS Int32;
DECLARE $status AS Utf8;
DECLARE $created_at AS Datetime;

INSERT INTO notifications ({_COLUMNS})
VALUES ($id, $telegram_chat_id, $subscription_id, $trip_id,
        $telegram_message_id, $status, $created_at);
"""

FIND_BY_TRIP = f"""
DECLARE $telegram_chat_id AS Int64;
DECLARE $subscription_id AS Utf8;
DECLARE $trip_id AS Utf8;

SELECT {_COLUMNS}
FROM notifications
WHERE telegram_chat_id = $telegram_chat_id
  AND subscription_id = $subscription_id
  AND trip_id = $trip_id
LIMIT 1;
"""

UPDATE_MESSAGE_ID = """
DECLARE $id AS Utf8;
DECLARE $telegram_message_id AS Int32;

UPDATE notifications
SET telegram_message_id = $telegram_message_id
WHERE id = $id;
"""


def decode_notification(row: Row) -> Notification:
    return Notification(
        id=row["id"],
        chat_id=row["telegram_chat_id"],
        subscription_id=row["subscription_id"],
        trip_id=row["trip_id"],
        message_id=row["telegram_message_id"],
        status=row["status"],
        created_at=codec.decode_datetime(row["created_at"]),
    )


class NotificationRepository(Repository):
    """Records of trips already sent to a chat.

    The (chat_id, subscription_id, trip_id) triple is the dedup key. This
    repository does not enforce its uniqueness: callers check
    ``find_by_trip`` before ``create``.
    """

    def create(self, notification: Notification, *,
               timeout: Optional[float] = None) -> Notification:
        """Record a sent notification, returns the values that were written"""
        created = dataclasses.replace(
            notification,
            id=notification.id or str(uuid.uuid4()),
            status=NOTIFICATION_STATUS_SENT,
            created_at=codec.utcnow(),
        )
        statement = Statement(
            "notifications.create",
            CREATE,
            {
                "$id": codec.utf8(created.id),
                "$telegram_chat_id": codec.int64(created.chat_id),
                "$subscription_id": codec.utf8(created.subscription_id),
                "$trip_id": codec.utf8(created.trip_id),
                "$telegram_message_id": codec.int32(created.message_id),
                "$status": codec.utf8(created.status),
                "$created_at": codec.timestamp(created.created_at),
            },
            {
                "id": created.id,
                "chat_id": created.chat_id,
                "subscription_id": created.subscription_id,
                "trip_id": created.trip_id,
            },
        )
        self._execute(statement, timeout)
        return created

    def find_by_trip(self, chat_id: int, subscription_id: str, trip_id: str, *,
                     timeout: Optional[float] = None) -> Optional[Notification]:
        """Dedup check: None means the trip was not sent yet (not an error)"""
        statement = Statement(
            "notifications.find_by_trip",
            FIND_BY_TRIP,
            {
                "$telegram_chat_id": codec.int64(chat_id),
                "$subscription_id": codec.utf8(subscription_id),
                "$trip_id": codec.utf8(trip_id),
            },
            {"chat_id": chat_id, "subscription_id": subscription_id, "trip_id": trip_id},
        )
        return self._fetch_one(statement, decode_notification, timeout)

    def update_message_id(self, notification_id: str, message_id: int, *,
                          timeout: Optional[float] = None) -> None:
        """Point the record at the Telegram message it was delivered as"""
        statement = Statement(
            "notifications.update_message_id",
            UPDATE_MESSAGE_ID,
            {
                "$id": codec.utf8(notification_id),
                "$telegram_message_id": codec.int32(message_id),
            },
            {"id": notification_id, "message_id": message_id},
        )
        self._execute(statement, timeout)
