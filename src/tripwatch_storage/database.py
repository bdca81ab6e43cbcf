from pathlib import Path
from typing import Callable, Optional, TypeVar

from .config import StoreConfig, load_config
from .connection import ConnectionProvider
from .executor import Executor, Transaction
from .repositories import (
    NotificationRepository,
    SubscriptionRepository,
    TokenRepository,
    UserRepository,
)
from .schema import ensure_schema

T = TypeVar("T")


class Database:
    """YDB repository facade.

    Groups the four entity repositories over one executor. Work that must
    touch several tables atomically goes through ``transaction``::

        def work(tx):
            sub = db.subscriptions.within(tx).create(subscription)
            db.notifications.within(tx).create(Notification(...))
            return sub

        db.transaction(work)
    """

    def __init__(self, executor: Executor):
        self.executor = executor
        self.users = UserRepository(executor)
        self.tokens = TokenRepository(executor)
        self.subscriptions = SubscriptionRepository(executor)
        self.notifications = NotificationRepository(executor)

    @classmethod
    def from_config(cls, config: StoreConfig) -> "Database":
        return cls(Executor(ConnectionProvider(config)))

    @classmethod
    def from_env(cls, config_path: Optional[Path] = None) -> "Database":
        """Build from YDB_* environment variables (and an optional JSON file)"""
        return cls.from_config(load_config(config_path))

    def transaction(self, work: Callable[[Transaction], T],
                    timeout: Optional[float] = None) -> T:
        """Run ``work`` in one serializable read-write transaction"""
        return self.executor.run_in_transaction(work, timeout=timeout)

    def ensure_schema(self, timeout: Optional[float] = None) -> None:
        ensure_schema(self.executor, timeout=timeout)

    def close(self) -> None:
        self.executor.provider.close()
