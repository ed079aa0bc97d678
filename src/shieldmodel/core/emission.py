"""
Emission Context

Generated code is written as Python source, one factory function per
generated artefact, and every function added to a context is compiled
together as a single module the first time any of them is needed.
"""

import itertools
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from ..errors import EmissionError

logger = logging.getLogger(__name__)

_context_ids = itertools.count(1)


class EmissionContext:
    """
    One unit of generated code.

    Functions are added as source text; the context compiles all of them
    at once and is sealed afterwards. A context is used by one caller only
    and is dropped once its types are built.
    """

    def __init__(self, label: str = "shieldmodel"):
        self.label = f"{label}-{next(_context_ids)}"
        self._sources: List[str] = []
        self._names = itertools.count()
        self._namespace: Optional[Dict[str, Any]] = None
        self.owners: List[Any] = []

    @property
    def sealed(self) -> bool:
        return self._namespace is not None

    @property
    def source(self) -> str:
        return "\n\n".join(self._sources)

    def reserve(self, hint: str) -> str:
        """Return a function name that is unique within this context."""
        return f"_emit_{next(self._names)}_{re.sub(r'[^0-9A-Za-z_]', '_', hint)}"

    def add(self, source: str, owner: Any = None) -> None:
        """
        Add the source of one top-level function.

        Args:
            source: Function definition, starting at column zero
            owner: Source class the function belongs to, for error reports
        """
        if self.sealed:
            raise RuntimeError(f"Emission context {self.label} is already compiled")
        self._sources.append(source)
        if owner is not None and owner not in self.owners:
            self.owners.append(owner)

    def compile(self) -> Dict[str, Any]:
        if self._namespace is None:
            filename = f"<shieldmodel:{self.label}>"
            try:
                code = compile(self.source, filename, "exec")
            except SyntaxError as e:
                raise EmissionError(self._owner_for_errors(), f"generated code does not compile: {e}") from e
            namespace: Dict[str, Any] = {"__name__": f"shieldmodel.generated.{self.label}"}
            exec(code, namespace)
            self._namespace = namespace
            logger.debug(f"Compiled emission context {self.label} ({len(self._sources)} functions)")
        return self._namespace

    def function(self, name: str) -> Callable[..., Any]:
        """Compile the context if needed and return one of its functions."""
        return self.compile()[name]

    def _owner_for_errors(self) -> Any:
        if len(self.owners) == 1:
            return self.owners[0]
        return tuple(self.owners)
