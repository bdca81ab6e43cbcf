import copy
import logging
from typing import Callable, List, Optional, Protocol, TypeVar

from ..errors import NotFoundError
from ..executor import Row, Statement

logger = logging.getLogger(__name__)

E = TypeVar("E")


class StatementRunner(Protocol):
    """Anything that runs statements: the shared Executor or a Transaction"""

    def query(self, statement: Statement, timeout: Optional[float] = None) -> List[Row]:
        ...

    def execute(self, statement: Statement, timeout: Optional[float] = None) -> None:
        ...


class Repository:
    """Common plumbing for the entity repositories"""

    def __init__(self, runner: StatementRunner):
        self._runner = runner

    def within(self, runner: StatementRunner):
        """Return this repository bound to another runner, usually a Transaction"""
        bound = copy.copy(self)
        bound._runner = runner
        return bound

    def _fetch_one(self, statement: Statement, decode: Callable[[Row], E],
                   timeout: Optional[float]) -> Optional[E]:
        rows = self._runner.query(statement, timeout=timeout)
        if not rows:
            return None
        return decode(rows[0])

    def _get_one(self, statement: Statement, decode: Callable[[Row], E],
                 not_found: NotFoundError, timeout: Optional[float]) -> E:
        """Point lookup: zero rows raises ``not_found``"""
        entity = self._fetch_one(statement, decode, timeout)
        if entity is None:
            logger.debug(f"[YDB] {statement.name}: no row for {statement.keys}")
            raise not_found
        return entity

    def _list(self, statement: Statement, decode: Callable[[Row], E],
              timeout: Optional[float]) -> List[E]:
        """Scan: rows in store order, empty list when nothing matches"""
        return [decode(row) for row in self._runner.query(statement, timeout=timeout)]

    def _execute(self, statement: Statement, timeout: Optional[float]) -> None:
        self._runner.execute(statement, timeout=timeout)
