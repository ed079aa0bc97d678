"""
Eligibility Analyzer

Decides whether a class can get a shielded proxy type and what the proxy
has to instrument. Analysis is a pure function of the class: it never
raises and never caches, failures are reported in the verdict.
"""

import collections.abc
import inspect
import logging
import types
import typing
from typing import Any, Dict, List, Optional, Tuple

from ..config import ShieldConfig
from .models import EligibilityVerdict, IneligibilityReason, PropertyInfo

logger = logging.getLogger(__name__)

# Py_TPFLAGS_BASETYPE: cleared on types that refuse subclassing (bool, NoneType, ...)
_TPFLAGS_BASETYPE = 1 << 10


def is_generated_type(cls: Any) -> bool:
    """True for classes produced by the proxy generator (not their subclasses)."""
    return isinstance(cls, type) and "__shielded_info__" in vars(cls)


def is_final(obj: Any) -> bool:
    """True for members or classes marked with ``typing.final``."""
    return bool(getattr(obj, "__final__", False))


class EligibilityAnalyzer:
    """
    Applies the eligibility rules in order; the first failing rule decides.

    1. sealed classes and already generated classes are rejected
    2. the class must be constructible without arguments
    3. at least one property with both getter and setter must be overridable
    4. abstract members other than instrumented properties are not allowed

    Commute method and change hook are detected by signature and only
    switch the corresponding wiring on; a mismatch is never an error.
    """

    def __init__(self, config: Optional[ShieldConfig] = None):
        self.config = config or ShieldConfig()

    def analyze(self, cls: Any) -> EligibilityVerdict:
        verdict = self._analyze(cls)
        if not verdict.eligible:
            logger.debug(f"{_name(cls)} is not eligible: {verdict.detail}")
        return verdict

    def _analyze(self, cls: Any) -> EligibilityVerdict:
        if not isinstance(cls, type):
            return EligibilityVerdict.reject(cls, IneligibilityReason.NOT_A_CLASS, f"{cls!r} is not a class")

        if vars(cls).get("__final__") or not cls.__flags__ & _TPFLAGS_BASETYPE:
            return EligibilityVerdict.reject(cls, IneligibilityReason.SEALED, "class is final and cannot be subclassed")

        if is_generated_type(cls):
            return EligibilityVerdict.reject(cls, IneligibilityReason.ALREADY_GENERATED, "class already is a shielded type")
        if any(is_generated_type(base) for base in cls.__mro__[1:]):
            return EligibilityVerdict.reject(
                cls, IneligibilityReason.ALREADY_GENERATED,
                "class derives from a shielded type, derive from its source class instead",
            )

        if not self._has_parameterless_constructor(cls):
            return EligibilityVerdict.reject(
                cls, IneligibilityReason.NO_PARAMETERLESS_CONSTRUCTOR,
                "class cannot be constructed without arguments",
            )

        properties, skipped = self._collect_properties(cls)
        if not properties:
            return EligibilityVerdict.reject(
                cls, IneligibilityReason.NO_USABLE_PROPERTIES,
                "nothing to instrument, no overridable property has both a getter and a setter",
                skipped=tuple(skipped),
            )

        instrumented = {p.name for p in properties}
        leftover = sorted(set(getattr(cls, "__abstractmethods__", ())) - instrumented)
        if leftover:
            return EligibilityVerdict.reject(
                cls, IneligibilityReason.ABSTRACT_MEMBERS,
                f"abstract members would stay unimplemented: {', '.join(leftover)}",
                properties=tuple(properties), skipped=tuple(skipped),
            )

        return EligibilityVerdict(
            source=cls,
            eligible=True,
            properties=tuple(properties),
            skipped=tuple(skipped),
            commute=self._has_commute(cls),
            change_hook=self._has_change_hook(cls),
        )

    @staticmethod
    def _has_parameterless_constructor(cls: type) -> bool:
        try:
            inspect.signature(cls).bind()
        except (TypeError, ValueError):
            return False
        return True

    @staticmethod
    def _collect_properties(cls: type) -> Tuple[List[PropertyInfo], List[str]]:
        # Base-first order; the most derived definition of a name wins
        members: Dict[str, Tuple[type, Any]] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                members[name] = (klass, attr)

        properties: List[PropertyInfo] = []
        skipped: List[str] = []
        for name, (owner, attr) in members.items():
            if not isinstance(attr, property):
                continue
            if (
                name.startswith("__")
                or name.startswith(f"_{owner.__name__.lstrip('_')}__")
                or attr.fget is None
                or attr.fset is None
                or is_final(attr.fget)
                or is_final(attr.fset)
            ):
                skipped.append(name)
                continue
            properties.append(PropertyInfo(name=name, owner=owner, fget=attr.fget, fset=attr.fset, doc=attr.__doc__))
        return properties, skipped

    def _has_commute(self, cls: type) -> bool:
        method = _plain_method(cls, self.config.commute_method)
        if method is None or is_final(method):
            return False
        parameter = _single_parameter(method)
        if parameter is None:
            return False

        hints = _type_hints(method)
        if "return" in hints and hints["return"] is not type(None):
            return False
        return parameter.name not in hints or _is_action(hints[parameter.name])

    def _has_change_hook(self, cls: type) -> bool:
        method = _plain_method(cls, self.config.change_hook)
        if method is None:
            return False
        parameter = _single_parameter(method)
        if parameter is None:
            return False

        hints = _type_hints(method)
        return parameter.name not in hints or hints[parameter.name] is str


def _plain_method(cls: type, name: str) -> Optional[types.FunctionType]:
    """Instance method defined in Python; static/class methods and builtins do not qualify."""
    attr = inspect.getattr_static(cls, name, None)
    return attr if isinstance(attr, types.FunctionType) else None


def _single_parameter(method: types.FunctionType) -> Optional[inspect.Parameter]:
    """The only parameter after ``self``, if the method takes exactly one."""
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    parameters = list(inspect.signature(method).parameters.values())
    if len(parameters) != 2 or any(p.kind not in positional for p in parameters):
        return None
    return parameters[1]


def _type_hints(method: types.FunctionType) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(method)
    except Exception:
        # Unresolvable annotations count as absent
        return {}


def _is_action(hint: Any) -> bool:
    """Callable taking no arguments and returning nothing."""
    if hint is Any or hint is collections.abc.Callable:
        return True
    if typing.get_origin(hint) is not collections.abc.Callable:
        return False
    args = typing.get_args(hint)
    return not args or (args[0] == [] and args[1] in (type(None), None))


def _name(cls: Any) -> str:
    return cls.__qualname__ if isinstance(cls, type) else repr(cls)
