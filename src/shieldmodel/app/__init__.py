"""
ShieldModel Application Layer

Caches, batch preparation and the public factory built on the core type
synthesis.
"""

from .activation import ActivationCache
from .batch import BatchPreparer
from .factory import (
    ShieldFactory,
    default_factory,
    shielded_type,
    new_shielded,
    can_generate,
    is_generated,
    prepare_types,
)
from .type_cache import TypeCache, CacheMetrics

__all__ = [
    "ActivationCache",
    "BatchPreparer",
    "ShieldFactory",
    "default_factory",
    "shielded_type",
    "new_shielded",
    "can_generate",
    "is_generated",
    "prepare_types",
    "TypeCache",
    "CacheMetrics",
]
