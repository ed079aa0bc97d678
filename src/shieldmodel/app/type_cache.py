"""
Type Cache

Memoizes generated types per source class. Each source class has its own
creation lock, so concurrent callers for the same class wait for a single
analysis and emission and then share its result. Failed generations are
not cached.
"""

import logging
import threading
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Optional

from ..core import AccessorEmitter, EligibilityAnalyzer, EmissionContext
from ..errors import EmissionError, IneligibleTypeError

logger = logging.getLogger(__name__)


@dataclass
class CacheMetrics:
    """Counters kept by the type cache"""
    hits: int = 0
    misses: int = 0
    emissions: int = 0
    failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary"""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "emissions": self.emissions,
            "failures": self.failures,
            "hit_rate": self.hits / max(self.hits + self.misses, 1),
        }


class TypeCache:
    """
    Source class to generated class mapping, filled exactly once per key.

    Cache hits take no creation lock: an entry only becomes visible after
    its class is fully built. Creation locks are kept for classes that were
    generated, or may still be; non-classes and ineligible classes drop
    theirs.
    """

    def __init__(self, analyzer: EligibilityAnalyzer, emitter: AccessorEmitter):
        self.analyzer = analyzer
        self.emitter = emitter
        self.metrics = CacheMetrics()
        self._types: Dict[type, type] = {}
        self._locks: Dict[type, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def __contains__(self, cls: Any) -> bool:
        return cls in self._types

    def __len__(self) -> int:
        return len(self._types)

    def get(self, cls: type) -> Optional[type]:
        return self._types.get(cls)

    def snapshot(self) -> Dict[type, type]:
        """Copy of all entries, for inspection and tests."""
        with self._registry_lock:
            return dict(self._types)

    def get_or_create(self, cls: type) -> type:
        """
        Return the generated type for a class, generating it on first use.

        Raises:
            IneligibleTypeError: If the class cannot be instrumented
            EmissionError: If code generation failed
        """
        if not isinstance(cls, type):
            self._count("misses")
            return self._generate(cls)

        generated = self._types.get(cls)
        if generated is not None:
            self._count("hits")
            return generated

        with self.lock_for(cls):
            generated = self._types.get(cls)
            if generated is not None:
                self._count("hits")
                return generated

            self._count("misses")
            try:
                generated = self._generate(cls)
            except IneligibleTypeError:
                self._drop_lock(cls)
                raise
            return self.commit({cls: generated})[cls]

    def lock_for(self, cls: type) -> threading.Lock:
        """Creation lock of one source class."""
        lock = self._locks.get(cls)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.setdefault(cls, threading.Lock())
        return lock

    @contextmanager
    def locks_for(self, classes: Iterable[type]) -> Iterator[None]:
        """Hold the creation locks of several classes, taken in a stable order."""
        ordered = sorted(set(classes), key=lambda c: (c.__module__, c.__qualname__, id(c)))
        with ExitStack() as stack:
            for cls in ordered:
                stack.enter_context(self.lock_for(cls))
            yield

    def commit(self, entries: Dict[type, type]) -> Dict[type, type]:
        """
        Insert several entries in one step. Entries already present win.

        Returns:
            The cached generated type for every key of ``entries``
        """
        with self._registry_lock:
            return {cls: self._types.setdefault(cls, generated) for cls, generated in entries.items()}

    def _drop_lock(self, cls: type) -> None:
        with self._registry_lock:
            self._locks.pop(cls, None)

    def record_emissions(self, count: int) -> None:
        self._count("emissions", count)

    def _generate(self, cls: type) -> type:
        verdict = self.analyzer.analyze(cls)
        if not verdict.eligible:
            self._count("failures")
            raise IneligibleTypeError(cls, verdict)

        context = EmissionContext(cls.__qualname__)
        try:
            generated = self.emitter.build(self.emitter.emit(verdict, context))
        except EmissionError:
            self._count("failures")
            raise

        self.record_emissions(1)
        return generated

    def _count(self, metric: str, amount: int = 1) -> None:
        with self._registry_lock:
            setattr(self.metrics, metric, getattr(self.metrics, metric) + amount)
