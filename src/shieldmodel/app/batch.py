"""
Batch Preparer

Generates a set of types together: all of them are emitted into one
emission context and committed to the type cache in one step, or none of
them are.
"""

import logging
from typing import Dict, Iterable, List

from ..core import AccessorEmitter, EligibilityAnalyzer, EligibilityVerdict, EmissionContext, is_generated_type
from ..errors import BatchPreparationError
from .type_cache import TypeCache

logger = logging.getLogger(__name__)


class BatchPreparer:
    """All-or-nothing generation of several types sharing one emission context."""

    def __init__(self, cache: TypeCache, analyzer: EligibilityAnalyzer, emitter: AccessorEmitter):
        self.cache = cache
        self.analyzer = analyzer
        self.emitter = emitter

    def prepare_all(self, classes: Iterable[type]) -> Dict[type, type]:
        """
        Make sure every class has a cached generated type.

        Every class is analysed before anything is emitted. Classes that are
        already generated types are accepted as they are.

        Args:
            classes: Source classes to prepare

        Returns:
            Mapping of each requested class to its generated type

        Raises:
            BatchPreparationError: If any class is ineligible; nothing is cached
            EmissionError: If emission failed for any class; nothing is cached
        """
        requested = list(dict.fromkeys(classes))
        prepared: Dict[type, type] = {}
        pending: List[EligibilityVerdict] = []

        for cls in requested:
            if is_generated_type(cls):
                prepared[cls] = cls
                continue
            verdict = self.analyzer.analyze(cls)
            if not verdict.eligible:
                raise BatchPreparationError(cls, verdict)
            pending.append(verdict)

        with self.cache.locks_for(v.source for v in pending):
            missing: List[EligibilityVerdict] = []
            for verdict in pending:
                existing = self.cache.get(verdict.source)
                if existing is not None:
                    prepared[verdict.source] = existing
                else:
                    missing.append(verdict)

            if missing:
                context = EmissionContext("batch")
                plans = [self.emitter.emit(verdict, context) for verdict in missing]
                built = {plan.source: self.emitter.build(plan) for plan in plans}
                prepared.update(self.cache.commit(built))
                self.cache.record_emissions(len(built))

        logger.info(f"Prepared {len(requested)} shielded types, {len(missing)} newly emitted")
        return {cls: prepared[cls] for cls in requested}
