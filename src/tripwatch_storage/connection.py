import logging
import threading
from typing import Callable, Optional

import ydb
import ydb.iam

from .config import CredentialsMode, StoreConfig
from .errors import StoreConnectionError, StoreError

logger = logging.getLogger(__name__)


class Connection:
    """Open YDB driver plus the query session pool built on top of it"""

    def __init__(self, driver, pool, table_path_prefix: str = ""):
        self.driver = driver
        self.pool = pool
        self.table_path_prefix = table_path_prefix

    def close(self) -> None:
        """Stop the session pool and the driver"""
        try:
            self.pool.stop()
        finally:
            self.driver.stop()


def _credentials(mode: CredentialsMode):
    if mode == CredentialsMode.ANONYMOUS:
        return ydb.AnonymousCredentials()
    if mode == CredentialsMode.ENVIRONMENT:
        return ydb.credentials_from_env_variables()
    # Cloud functions / VMs get an IAM token from the metadata service
    return ydb.iam.MetadataUrlCredentials()


def open_connection(config: StoreConfig) -> Connection:
    """Open a driver for ``config`` and wait for endpoint discovery"""
    config.require_complete()

    driver = ydb.Driver(
        endpoint=config.endpoint,
        database=config.database,
        credentials=_credentials(config.credentials),
    )
    try:
        driver.wait(timeout=config.connect_timeout, fail_fast=True)
    except Exception as e:
        driver.stop()
        raise StoreConnectionError(
            f"Failed to connect to {config.endpoint}{config.database}: {e}"
        ) from e

    logger.info(f"Connected to YDB {config.endpoint}{config.database}")
    return Connection(driver, ydb.QuerySessionPool(driver), config.table_path_prefix())


class ConnectionProvider:
    """Lazily opens the single connection shared by every repository.

    The first ``acquire()`` opens the connection, concurrent first callers
    wait for it and all of them see the same result. A failed initialization
    is remembered and raised again on every later call; build a new provider
    (in practice, restart the process) to try again.
    """

    def __init__(self, config: StoreConfig,
                 opener: Callable[[StoreConfig], Connection] = open_connection):
        self.config = config
        self._opener = opener
        self._lock = threading.Lock()
        self._initialized = False
        self._connection: Optional[Connection] = None
        self._error: Optional[StoreError] = None

    def acquire(self) -> Connection:
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self._initialize()
        if self._error is not None:
            raise self._error
        return self._connection

    def _initialize(self) -> None:
        try:
            self._connection = self._opener(self.config)
        except StoreError as e:
            logger.error(f"YDB connection init failed: {e}")
            self._error = e
        except Exception as e:
            logger.error(f"YDB connection init failed: {e}")
            error = StoreConnectionError(f"Failed to open YDB connection: {e}")
            error.__cause__ = e
            self._error = error
        self._initialized = True

    @property
    def initialized(self) -> bool:
        return self._initialized

    def close(self) -> None:
        """Close the connection if it was opened"""
        if self._connection is not None:
            self._connection.close()
