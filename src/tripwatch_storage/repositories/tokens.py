import dataclasses
import logging
from typing import Optional

from .. import codec
from ..errors import TokensNotFoundError
from ..executor import Row, Statement
from ..models import UserTokens
from .base import Repository

logger = logging.getLogger(__name__)

_COLUMNS = ("telegram_chat_id, access_token, refresh_token, user_id, "
            "datadome, app_token, created_at, updated_at")

GET = f"""
DECLARE $telegram_chat_id AS Int64;

SELECT {_COLUMNS}
FROM user_tokens
WHERE telegram_chat_id = $telegram_chat_id;
"""

STORE = f"""
DECLARE $telegram_chat_id AS Int64;
DECLARE $access_token AS Utf8;
DECLARE $refresh_token AS Utf8;
DECLARE $user_id AS Utf8;
DECLARE $datadome AS Optional<Utf8>;
DECLARE $app_token AS Optional<Utf8>;
DECLARE $created_at AS Datetime;
DECLARE $updated_at AS Datetime;

UPSERT INTO user_tokens ({_COLUMNS})
VALUES ($telegram_chat_id, $access_token, $refresh_token, $user_id,
        $datadome, $app_token, $created_at, $updated_at);
"""

DELETE = """
DECLARE $telegram_chat_id AS Int64;

DELETE FROM user_tokens
WHERE telegram_chat_id = $telegram_chat_id;
"""


def decode_tokens(row: Row) -> UserTokens:
    return UserTokens(
        chat_id=row["telegram_chat_id"],
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        user_id=row["user_id"],
        datadome=codec.decode_optional_text(row["datadome"]),
        app_token=codec.decode_optional_text(row["app_token"]),
        created_at=codec.decode_datetime(row["created_at"]),
        updated_at=codec.decode_datetime(row["updated_at"]),
    )


class TokenRepository(Repository):
    """BlaBlaCar tokens, one set per chat"""

    def get(self, chat_id: int, *, timeout: Optional[float] = None) -> UserTokens:
        """Get tokens for a chat, raises TokensNotFoundError if absent"""
        statement = Statement(
            "tokens.get",
            GET,
            {"$telegram_chat_id": codec.int64(chat_id)},
            {"chat_id": chat_id},
        )
        return self._get_one(statement, decode_tokens, TokensNotFoundError(chat_id), timeout)

    def store(self, tokens: UserTokens, *, timeout: Optional[float] = None) -> UserTokens:
        """Replace the token set of a chat.

        ``updated_at`` is always set to now, ``created_at`` only when the
        caller left it empty. The row is overwritten without being read, so
        to keep the original ``created_at`` across a refresh the caller must
        carry it forward (e.g. ``replace`` on the value from ``get``). A fresh
        ``UserTokens`` resets it to now. Returns the values that were written.
        """
        now = codec.utcnow()
        stored = dataclasses.replace(
            tokens,
            created_at=tokens.created_at or now,
            updated_at=now,
        )
        statement = Statement(
            "tokens.store",
            STORE,
            {
                "$telegram_chat_id": codec.int64(stored.chat_id),
                "$access_token": codec.utf8(stored.access_token),
                "$refresh_token": codec.utf8(stored.refresh_token),
                "$user_id": codec.utf8(stored.user_id),
                "$datadome": codec.optional_text(stored.datadome),
                "$app_token": codec.optional_text(stored.app_token),
                "$created_at": codec.timestamp(stored.created_at),
                "$updated_at": codec.timestamp(stored.updated_at),
            },
            {"chat_id": stored.chat_id},
        )
        logger.debug(f"[YDB] store tokens for chat {stored.chat_id}, user_id={stored.user_id}")
        self._execute(statement, timeout)
        return stored

    def delete(self, chat_id: int, *, timeout: Optional[float] = None) -> None:
        """Remove tokens of a chat, no-op if there are none"""
        statement = Statement(
            "tokens.delete",
            DELETE,
            {"$telegram_chat_id": codec.int64(chat_id)},
            {"chat_id": chat_id},
        )
        self._execute(statement, timeout)
