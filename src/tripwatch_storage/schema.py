"""Table layout and bootstrap"""
import logging
from typing import Optional

from .executor import Executor

logger = logging.getLogger(__name__)

# Current table layout version
SCHEMA_VERSION = 3

TABLES = {
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            telegram_chat_id Int64 NOT NULL,
            status Utf8 NOT NULL,
            created_at Datetime NOT NULL,
            last_auth_success_at Datetime,
            last_auth_failure_at Datetime,
            PRIMARY KEY (telegram_chat_id)
        );
    """,

    "user_tokens": """
        CREATE TABLE IF NOT EXISTS user_tokens (
            telegram_chat_id Int64 NOT NULL,
            access_token Utf8 NOT NULL,
            refresh_token Utf8 NOT NULL,
            user_id Utf8 NOT NULL,
            datadome Utf8,
            app_token Utf8,
            created_at Datetime NOT NULL,
            updated_at Datetime NOT NULL,
            PRIMARY KEY (telegram_chat_id)
        );
    """,

    # idx_search_subscriptions_chat covers per-chat listing
    "search_subscriptions": """
        CREATE TABLE IF NOT EXISTS search_subscriptions (
            id Utf8 NOT NULL,
            telegram_chat_id Int64 NOT NULL,
            from_place_id Utf8 NOT NULL,
            from_place_name Utf8 NOT NULL,
            to_place_id Utf8 NOT NULL,
            to_place_name Utf8 NOT NULL,
            departure_date Utf8 NOT NULL,
            requested_seats Int32 NOT NULL,
            is_active Bool NOT NULL,
            created_at Datetime NOT NULL,
            last_checked_at Datetime,
            PRIMARY KEY (id),
            INDEX idx_search_subscriptions_chat GLOBAL ON (telegram_chat_id)
        );
    """,

    # idx_notifications_trip covers the (chat, subscription, trip) dedup lookup
    "notifications": """
        CREATE TABLE IF NOT EXISTS notifications (
            id Utf8 NOT NULL,
            telegram_chat_id Int64 NOT NULL,
            subscription_id Utf8 NOT NULL,
            trip_id Utf8 NOT NULL,
            telegram_message_id Int32 NOT NULL,
            status Utf8 NOT NULL,
            created_at Datetime NOT NULL,
            PRIMARY KEY (id),
            INDEX idx_notifications_trip GLOBAL ON (telegram_chat_id, subscription_id, trip_id)
        );
    """,
}


def ensure_schema(executor: Executor, timeout: Optional[float] = None) -> None:
    """Create the bot tables that do not exist yet"""
    for table, ddl in TABLES.items():
        logger.info(f"Ensuring table {table} (schema v{SCHEMA_VERSION})")
        executor.execute_scheme(ddl, timeout=timeout, name=f"schema.create_{table}")
