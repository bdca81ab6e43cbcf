import logging
from typing import List, Optional

from .. import codec
from ..errors import UserNotFoundError
from ..executor import Row, Statement
from ..models import User, UserStatus
from .base import Repository

logger = logging.getLogger(__name__)

_COLUMNS = "telegram_chat_id, status, created_at, last_auth_success_at, last_auth_failure_at"

GET_BY_CHAT_ID = f"""
DECLARE $telegram_chat_id AS Int64;

SELECT {_COLUMNS}
FROM users
WHERE telegram_chat_id = $telegram_chat_id;
"""

UPSERT = f"""
DECLARE $telegram_chat_id AS Int64;
DECLARE $status AS Utf8;
DECLARE $created_at AS Datetime;
DECLARE $last_auth_success_at AS Optional<Datetime>;
DECLARE $last_auth_failure_at AS Optional<Datetime>;

UPSERT INTO users ({_COLUMNS})
VALUES ($telegram_chat_id, $status, $created_at, $last_auth_success_at, $last_auth_failure_at);
"""

UPDATE_STATUS = """
DECLARE $telegram_chat_id AS Int64;
DECLARE $status AS Utf8;

UPDATE users
SET status = $status
WHERE telegram_chat_id = $telegram_chat_id;
"""

LIST_BY_STATUS = f"""
DECLARE $status AS Utf8;

SELECT {_COLUMNS}
FROM users
WHERE status = $status
ORDER BY telegram_chat_id;
"""


def decode_user(row: Row) -> User:
    return User(
        chat_id=row["telegram_chat_id"],
        status=UserStatus(row["status"]),
        created_at=codec.decode_datetime(row["created_at"]),
        last_auth_success_at=codec.decode_optional_datetime(row["last_auth_success_at"]),
        last_auth_failure_at=codec.decode_optional_datetime(row["last_auth_failure_at"]),
    )


class UserRepository(Repository):
    """Users table"""

    def get_by_chat_id(self, chat_id: int, *, timeout: Optional[float] = None) -> User:
        """Get user by chat_id, raises UserNotFoundError if absent"""
        statement = Statement(
            "users.get_by_chat_id",
            GET_BY_CHAT_ID,
            {"$telegram_chat_id": codec.int64(chat_id)},
            {"chat_id": chat_id},
        )
        return self._get_one(statement, decode_user, UserNotFoundError(chat_id), timeout)

    def exists(self, chat_id: int, *, timeout: Optional[float] = None) -> bool:
        """Check if user is registered"""
        try:
            self.get_by_chat_id(chat_id, timeout=timeout)
        except UserNotFoundError:
            return False
        return True

    def upsert(self, user: User, *, timeout: Optional[float] = None) -> None:
        """Insert the user or replace the whole existing row"""
        statement = Statement(
            "users.upsert",
            UPSERT,
            {
                "$telegram_chat_id": codec.int64(user.chat_id),
                "$status": codec.utf8(UserStatus(user.status).value),
                "$created_at": codec.timestamp(user.created_at),
                "$last_auth_success_at": codec.optional_timestamp(user.last_auth_success_at),
                "$last_auth_failure_at": codec.optional_timestamp(user.last_auth_failure_at),
            },
            {"chat_id": user.chat_id},
        )
        logger.debug(f"[YDB] upsert user {user.chat_id} status={UserStatus(user.status).value}")
        self._execute(statement, timeout)

    def update_status(self, chat_id: int, status: UserStatus, *,
                      timeout: Optional[float] = None) -> None:
        """Change only the status column, timestamps stay as they are"""
        status = UserStatus(status)
        statement = Statement(
            "users.update_status",
            UPDATE_STATUS,
            {
                "$telegram_chat_id": codec.int64(chat_id),
                "$status": codec.utf8(status.value),
            },
            {"chat_id": chat_id, "status": status.value},
        )
        self._execute(statement, timeout)

    def list_active(self, *, timeout: Optional[float] = None) -> List[User]:
        """All users with status active"""
        statement = Statement(
            "users.list_active",
            LIST_BY_STATUS,
            {"$status": codec.utf8(UserStatus.ACTIVE.value)},
        )
        return self._list(statement, decode_user, timeout)
