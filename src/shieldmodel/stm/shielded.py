"""
Shielded Cells

A Shielded cell holds one value under transactional control. Generated
proxy types keep all of an instance's properties in one cell, as a single
immutable state record.
"""

from typing import Any, Callable, Generic, Optional, Tuple, TypeVar

from .transaction import current_transaction, enlist_commute, in_transaction

T = TypeVar('T')


class Shielded(Generic[T]):
    """
    Transactional cell.

    Reading outside a transaction returns the last committed value.
    Assigning outside a transaction commits immediately as a transaction
    of its own.
    """

    __slots__ = ("_committed", "__weakref__")

    def __init__(self, initial: Optional[T] = None):
        # (version, value); replaced as a whole under the commit lock
        self._committed: Tuple[int, Any] = (0, initial)

    @property
    def value(self) -> T:
        transaction = current_transaction()
        if transaction is None:
            return self._committed[1]
        return transaction.read(self)

    @value.setter
    def value(self, new_value: T) -> None:
        transaction = current_transaction()
        if transaction is None:
            in_transaction(lambda: setattr(self, "value", new_value))
            return
        transaction.write(self, new_value)

    @property
    def version(self) -> int:
        """Version of the last committed value."""
        return self._committed[0]

    def modify(self, fn: Callable[[T], T]) -> None:
        """Replace the value with fn(value) in one transaction."""
        in_transaction(lambda: setattr(self, "value", fn(self.value)))

    def commute(self, fn: Callable[[T], T]) -> None:
        """Replace the value with fn(value) as a commutative operation."""
        enlist_commute(lambda: setattr(self, "value", fn(self.value)), self)

    def __repr__(self) -> str:
        version, value = self._committed
        return f"Shielded({value!r}, version={version})"
