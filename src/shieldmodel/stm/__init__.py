"""
ShieldModel STM

The transactional container that generated proxy types store their
properties in: Shielded cells, optimistic transactions and commutes.
"""

from .shielded import Shielded
from .transaction import (
    Transaction,
    TransactionError,
    ConflictError,
    TransactionAbortedError,
    current_transaction,
    in_transaction,
    rollback,
    enlist_commute,
)

__all__ = [
    "Shielded",
    "Transaction",
    "TransactionError",
    "ConflictError",
    "TransactionAbortedError",
    "current_transaction",
    "in_transaction",
    "rollback",
    "enlist_commute",
]
