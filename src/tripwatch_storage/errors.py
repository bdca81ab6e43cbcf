from typing import Any, Dict, Optional


class StoreError(Exception):
    """Base class for every error raised by the storage layer"""


class ConfigError(StoreError):
    """Connection settings are missing or invalid"""


class StoreConnectionError(StoreError):
    """The driver could not reach the database"""


class NotFoundError(StoreError):
    """A point lookup matched zero rows"""

    entity = "entity"

    def __init__(self, key: Any):
        self.key = key
        super().__init__(f"{self.entity} not found: {key}")


class UserNotFoundError(NotFoundError):
    entity = "user"


class TokensNotFoundError(NotFoundError):
    entity = "tokens"


class SubscriptionNotFoundError(NotFoundError):
    entity = "subscription"


class ExecutionError(StoreError):
    """Statement execution failed inside the store.

    Carries the operation name and the key identifiers of the call, the
    original ydb error is available as ``cause`` (and ``__cause__``).
    """

    def __init__(self, operation: str, keys: Optional[Dict[str, Any]] = None,
                 cause: Optional[BaseException] = None):
        self.operation = operation
        self.keys = dict(keys or {})
        self.cause = cause
        message = f"{operation} failed"
        if self.keys:
            details = ", ".join(f"{k}={v!r}" for k, v in self.keys.items())
            message += f" ({details})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class OperationCancelledError(ExecutionError):
    """The call hit its deadline or was cancelled before the store answered"""


class TruncatedResultError(ExecutionError):
    """The store returned only part of a result set"""
