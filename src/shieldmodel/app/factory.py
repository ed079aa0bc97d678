"""
Shield Factory

Public entry points of the proxy generator. A factory owns its own type
and activation caches; the module-level functions use one process-wide
factory created on first use.
"""

import logging
import threading
from typing import Any, Dict, Iterable, Optional, Type, TypeVar

from ..config import ShieldConfig
from ..core import AccessorEmitter, EligibilityAnalyzer, EligibilityVerdict, is_generated_type
from .activation import ActivationCache
from .batch import BatchPreparer
from .type_cache import TypeCache

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ShieldFactory:
    """
    Generates shielded proxy subclasses for plain classes.

    The proxy type keeps every property that has an overridable getter and
    setter in one Shielded container. Base setters run before every change
    and may use the getter to read the old value; a base setter returning
    something other than None replaces the value being stored. Base
    getters are never called.

    If the class has a ``commute(action)`` method, the proxy runs the action
    as a commute. If it has ``_on_changed(name)``, the proxy calls it after
    every property change with the property name.
    """

    def __init__(self, config: Optional[ShieldConfig] = None):
        self.config = config or ShieldConfig.from_env()
        self.analyzer = EligibilityAnalyzer(self.config)
        self.emitter = AccessorEmitter(self.config)
        self.types = TypeCache(self.analyzer, self.emitter)
        self.activators = ActivationCache()
        self.batch = BatchPreparer(self.types, self.analyzer, self.emitter)

    def shielded_type(self, cls: Type[T]) -> Type[T]:
        """
        Return the proxy type of a class, generating it once.

        A class that already is a proxy type is returned unchanged.

        Raises:
            IneligibleTypeError: If the class cannot be instrumented
            EmissionError: If code generation failed
        """
        if is_generated_type(cls):
            return cls
        return self.types.get_or_create(cls)

    def new_shielded(self, cls: Type[T]) -> T:
        """Construct a new instance of the proxy type of a class."""
        return self.activators.instantiate(self.shielded_type(cls))

    def can_generate(self, cls: Any) -> bool:
        """
        True if a proxy type can be generated for the class.

        Prefer preparing every type you need with prepare_types(): an
        unsuitable type then fails at preparation time instead of at the
        first construction.
        """
        return self.analyzer.analyze(cls).eligible

    def analyze(self, cls: Any) -> EligibilityVerdict:
        """Full eligibility verdict, including the reason of a rejection."""
        return self.analyzer.analyze(cls)

    @staticmethod
    def is_generated(cls: Any) -> bool:
        """True if the class is a proxy type."""
        return is_generated_type(cls)

    def prepare_types(self, classes: Iterable[type]) -> Dict[type, type]:
        """
        Prepare proxy types for several classes in one emission context.

        Raises:
            BatchPreparationError: If any class is unsuitable; no type of
                the batch is cached then
        """
        prepared = self.batch.prepare_all(classes)
        for generated in prepared.values():
            self.activators.activator_for(generated)
        return prepared


_default_factory: Optional[ShieldFactory] = None
_default_lock = threading.Lock()


def default_factory() -> ShieldFactory:
    """Get the process-wide factory used by the module-level functions."""
    global _default_factory
    if _default_factory is None:
        with _default_lock:
            if _default_factory is None:
                _default_factory = ShieldFactory()
                logger.debug("Created default shield factory")
    return _default_factory


def shielded_type(cls: Type[T]) -> Type[T]:
    return default_factory().shielded_type(cls)


def new_shielded(cls: Type[T]) -> T:
    return default_factory().new_shielded(cls)


def can_generate(cls: Any) -> bool:
    return default_factory().can_generate(cls)


def is_generated(cls: Any) -> bool:
    return is_generated_type(cls)


def prepare_types(classes: Iterable[type]) -> Dict[type, type]:
    return default_factory().prepare_types(classes)
