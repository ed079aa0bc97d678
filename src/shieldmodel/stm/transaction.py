"""
Transactions

Optimistic transactions over Shielded cells. Each transaction works on a
private read/write set, validates its reads against a global version clock
at commit time and restarts on conflict. Commutative operations are
deferred to commit time, where they run against the latest committed
values without registering a read dependency.
"""

import contextvars
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Optional, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from .shielded import Shielded

logger = logging.getLogger(__name__)

T = TypeVar('T')


class TransactionError(Exception):
    """Raised when transaction operations are misused"""
    pass


class ConflictError(TransactionError):
    """Raised inside a transaction that must restart because it read stale data"""
    pass


class TransactionAbortedError(TransactionError):
    """Raised when a transaction kept conflicting past its retry limit"""
    pass


class _Rollback(Exception):
    pass


class _VersionClock:
    """
    Global commit counter. Only advanced while holding the commit lock.

    A commit writes its cells at the next version before publishing it, so
    a transaction stamped with the published value never sees part of a
    commit.
    """

    def __init__(self):
        self.value = 0

    def next(self) -> int:
        return self.value + 1

    def publish(self, version: int) -> None:
        self.value = version


_commit_lock = threading.RLock()
_clock = _VersionClock()
_current: contextvars.ContextVar[Optional['Transaction']] = contextvars.ContextVar(
    "shieldmodel_transaction", default=None
)


@dataclass
class _Commute:
    action: Callable[[], Any]
    cells: FrozenSet['Shielded']


class Transaction:
    """
    State of one transaction attempt.

    Reads record the version they observed; writes are buffered until
    commit. A transaction that reads a cell committed after it started
    conflicts immediately, so every attempt sees a consistent snapshot.
    """

    def __init__(self, stamp: int):
        self.stamp = stamp
        self.reads: Dict['Shielded', int] = {}
        self.writes: Dict['Shielded', Any] = {}
        self.commutes: List[_Commute] = []
        # Set while commute actions run at commit time
        self.commute_cells: Optional[FrozenSet['Shielded']] = None

    @property
    def is_commuting(self) -> bool:
        return self.commute_cells is not None

    def read(self, cell: 'Shielded') -> Any:
        self._check_commute_access(cell)
        self._degenerate(cell)
        if cell in self.writes:
            return self.writes[cell]

        version, value = cell._committed
        if version > self.stamp:
            raise ConflictError(f"{cell!r} changed after transaction start")
        self.reads.setdefault(cell, version)
        return value

    def write(self, cell: 'Shielded', value: Any) -> None:
        self._check_commute_access(cell)
        self._degenerate(cell)
        if cell not in self.writes and cell not in self.reads:
            version = cell._committed[0]
            if version > self.stamp:
                raise ConflictError(f"{cell!r} changed after transaction start")
            self.reads[cell] = version
        self.writes[cell] = value

    def touched(self, cell: 'Shielded') -> bool:
        return cell in self.reads or cell in self.writes

    def enlist(self, action: Callable[[], Any], cells: FrozenSet['Shielded']) -> None:
        if self.is_commuting or any(self.touched(cell) for cell in cells):
            # Already depends on these cells, a deferred run would gain nothing
            action()
            return
        self.commutes.append(_Commute(action, cells))

    def _degenerate(self, cell: 'Shielded') -> None:
        """Run pending commutes on a cell inline before it is accessed directly."""
        if self.is_commuting or not self.commutes:
            return
        pending = [c for c in self.commutes if cell in c.cells]
        if not pending:
            return
        self.commutes = [c for c in self.commutes if cell not in c.cells]
        for commute in pending:
            commute.action()

    def _check_commute_access(self, cell: 'Shielded') -> None:
        if self.is_commuting and cell not in self.commute_cells:
            raise TransactionError(f"Commute accessed {cell!r}, which it was not enlisted on")

    def commit(self) -> None:
        with _commit_lock:
            for cell, version in self.reads.items():
                if cell._committed[0] != version:
                    raise ConflictError(f"{cell!r} was committed by another transaction")

            if self.commutes:
                self._run_commutes()

            if not self.writes:
                return

            version = _clock.next()
            for cell, value in self.writes.items():
                cell._committed = (version, value)
            _clock.publish(version)

    def _run_commutes(self) -> None:
        # Under the commit lock every committed version is <= the clock,
        # so commute reads never conflict.
        commuting = Transaction(_clock.value)
        token = _current.set(commuting)
        try:
            for commute in self.commutes:
                commuting.commute_cells = commute.cells
                commute.action()
        finally:
            _current.reset(token)
        self.commutes = []
        self.writes.update(commuting.writes)


def current_transaction() -> Optional[Transaction]:
    """Return the transaction active in this context, if any."""
    return _current.get()


def in_transaction(fn: Optional[Callable[[], T]] = None, max_retries: Optional[int] = None):
    """
    Run a function inside a transaction.

    Nested calls join the enclosing transaction. Conflicts restart the
    function from scratch, so it must not have effects outside Shielded
    cells that cannot be repeated.

    Args:
        fn: Zero-argument function to run. Without it, reports whether a
            transaction is active.
        max_retries: Restarts allowed before giving up, None for unlimited

    Returns:
        The function's result, or None if it called rollback()

    Raises:
        TransactionAbortedError: If the retry limit was exceeded
    """
    if fn is None:
        return _current.get() is not None

    if _current.get() is not None:
        return fn()

    attempt = 0
    while True:
        attempt += 1
        transaction = Transaction(_clock.value)
        token = _current.set(transaction)
        try:
            result = fn()
            transaction.commit()
            return result
        except ConflictError as e:
            logger.debug(f"Transaction attempt {attempt} conflicted: {e}")
            if max_retries is not None and attempt > max_retries:
                raise TransactionAbortedError(
                    f"Transaction gave up after {attempt} conflicting attempts"
                ) from e
        except _Rollback:
            return None
        finally:
            _current.reset(token)


def rollback() -> None:
    """Abandon the current transaction; in_transaction() then returns None."""
    if _current.get() is None:
        raise TransactionError("rollback() called outside of a transaction")
    raise _Rollback()


def enlist_commute(action: Callable[[], Any], *cells: 'Shielded', max_retries: Optional[int] = None) -> None:
    """
    Schedule an action as a commutative operation on the given cells.

    The action runs at commit time against the latest committed values and
    adds no read dependency, so concurrent commutes on the same cells do not
    conflict. If the transaction reads or writes one of the cells directly,
    pending commutes on it run at that point instead. Outside a transaction
    the action runs in a transaction of its own.

    Args:
        action: Zero-argument function touching only the given cells
        cells: Cells the action is allowed to access
        max_retries: Retry limit when a transaction has to be opened
    """
    transaction = _current.get()
    if transaction is None:
        in_transaction(action, max_retries=max_retries)
        return
    transaction.enlist(action, frozenset(cells))
