"""
Activation Cache

Memoizes one zero-argument construction function per generated type. The
function calls the type's ``__new__`` and ``__init__`` directly instead of
going through the metaclass call machinery.
"""

import logging
import threading
from typing import Any, Callable, Dict

from ..core import EmissionContext, is_generated_type

logger = logging.getLogger(__name__)

_ACTIVATOR_TEMPLATE = '''\
def {factory}(_cls, _new, _init):
    def activate():
        instance = _new(_cls)
        if isinstance(instance, _cls):
            _init(instance)
        return instance
    return activate
'''


class ActivationCache:
    """Generated type to activator mapping, with a lock of its own."""

    def __init__(self):
        self._activators: Dict[type, Callable[[], Any]] = {}
        self._lock = threading.Lock()

    def __contains__(self, generated: Any) -> bool:
        return generated in self._activators

    def activator_for(self, generated: type) -> Callable[[], Any]:
        """
        Return the activator of a generated type, creating it on first use.

        Raises:
            TypeError: If the class was not produced by the proxy generator
        """
        activator = self._activators.get(generated)
        if activator is not None:
            return activator

        if not is_generated_type(generated):
            raise TypeError(f"{generated!r} is not a shielded type")

        with self._lock:
            activator = self._activators.get(generated)
            if activator is None:
                activator = self._create_activator(generated)
                self._activators[generated] = activator
        return activator

    def instantiate(self, generated: type) -> Any:
        """Construct a new instance of a generated type."""
        return self.activator_for(generated)()

    @staticmethod
    def _create_activator(generated: type) -> Callable[[], Any]:
        if type(generated).__call__ is not type.__call__:
            # A metaclass with its own __call__ decides how instances are made
            return generated

        context = EmissionContext(f"activate-{generated.__qualname__}")
        factory = context.reserve(generated.__name__)
        context.add(_ACTIVATOR_TEMPLATE.format(factory=factory), owner=generated)
        activator = context.function(factory)(generated, generated.__new__, generated.__init__)
        activator.__qualname__ = f"{generated.__qualname__}.activate"
        logger.debug(f"Created activator for {generated.__qualname__}")
        return activator
