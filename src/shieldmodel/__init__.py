"""
ShieldModel - Transactional Proxies for Plain Classes

Generates, once per class, a subclass whose properties are backed by one
transactional container, so that all fields of an object commit or roll
back together inside a transaction.
"""

from .app import (
    ShieldFactory,
    default_factory,
    shielded_type,
    new_shielded,
    can_generate,
    is_generated,
    prepare_types,
)
from .config import ShieldConfig, Environment, LoggingConfig, configure_logging
from .core import Commutable, Observable, EligibilityVerdict, IneligibilityReason
from .errors import ShieldModelError, IneligibleTypeError, EmissionError, BatchPreparationError
from .stm import Shielded, in_transaction, rollback, enlist_commute, TransactionError, TransactionAbortedError

__all__ = [
    # Factory API
    'ShieldFactory',
    'default_factory',
    'shielded_type',
    'new_shielded',
    'can_generate',
    'is_generated',
    'prepare_types',

    # Configuration
    'ShieldConfig',
    'Environment',
    'LoggingConfig',
    'configure_logging',

    # Analysis
    'Commutable',
    'Observable',
    'EligibilityVerdict',
    'IneligibilityReason',

    # Errors
    'ShieldModelError',
    'IneligibleTypeError',
    'EmissionError',
    'BatchPreparationError',

    # Transactions
    'Shielded',
    'in_transaction',
    'rollback',
    'enlist_commute',
    'TransactionError',
    'TransactionAbortedError',
]
