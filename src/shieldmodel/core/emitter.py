"""
Accessor Emitter

Writes the derived type for an eligible class. All instrumented properties
of an instance live in one Shielded cell holding an immutable state
record, so a transaction touching several properties of an object commits
or rolls back all of them together.

Generated setters first run the base setter (which may read the current
value through the generated getter), store the resulting value in the
state record, then call the change hook with the property name. Generated
getters read the state record only; base getters are never called.
Shallow copies get a container of their own, holding the current state.
"""

import dataclasses
import inspect
import keyword
import logging
from dataclasses import dataclass, field, make_dataclass
from typing import Any, Optional, Tuple

from ..config import ShieldConfig
from ..errors import EmissionError, IneligibleTypeError
from ..stm import Shielded, enlist_commute, in_transaction
from .emission import EmissionContext
from .models import EligibilityVerdict, GeneratedTypeInfo

logger = logging.getLogger(__name__)

_FACTORY_TEMPLATE = '''\
def {factory}(_base, _base_copy, _state, _fsets, _Shielded, _in_transaction, _enlist_commute, _replace, _max_retries):
    def __init__(self, *args, **kwargs):
        object.__setattr__(self, {container!r}, _Shielded(_state()))
        _base.__init__(self, *args, **kwargs)

    def __copy__(self):
        if _base_copy is not None:
            clone = _base_copy(self)
        else:
            clone = type(self).__new__(type(self))
            clone.__dict__.update(self.__dict__)
        object.__setattr__(clone, {container!r}, _Shielded(self.{container}.value))
        return clone
{accessors}{commute}
    return __init__, __copy__, ({accessor_names}), {commute_name}
'''

_ACCESSOR_TEMPLATE = '''
    _fset_{index} = _fsets[{index}]

    def get_{name}(self):
        return self.{container}.value.{name}

    def set_{name}(self, value):
        if not _in_transaction():
            return _in_transaction(lambda: set_{name}(self, value), max_retries=_max_retries)
        result = _fset_{index}(self, value)
        if result is not None:
            value = result
        container = self.{container}
        container.value = _replace(container.value, {name}=value)
{hook}'''

_HOOK_TEMPLATE = '''\
        self.{hook}({name!r})
'''

_COMMUTE_TEMPLATE = '''
    def {method}(self, action):
        _enlist_commute(action, self.{container}, max_retries=_max_retries)
'''


@dataclass
class EmissionPlan:
    """A type whose code was added to an emission context but not built yet."""
    verdict: EligibilityVerdict
    name: str
    qualname: str
    factory: str
    state_type: type
    context: EmissionContext = field(repr=False)

    @property
    def source(self) -> type:
        return self.verdict.source


class AccessorEmitter:
    """Emits and builds shielded proxy types for eligible classes."""

    def __init__(self, config: Optional[ShieldConfig] = None):
        self.config = config or ShieldConfig()

    def emit(self, verdict: EligibilityVerdict, context: EmissionContext) -> EmissionPlan:
        """
        Add the code of one generated type to a context.

        Args:
            verdict: Positive verdict for the source class
            context: Context the code is compiled in

        Returns:
            Plan to pass to build() once the context is complete

        Raises:
            IneligibleTypeError: If the verdict is negative
            EmissionError: If the class cannot be expressed as a shielded type
        """
        if not verdict.eligible:
            raise IneligibleTypeError(verdict.source, verdict)

        cls = verdict.source
        names = verdict.property_names
        self._check_names(cls, verdict)

        name = self.config.type_name_template.format(name=cls.__name__)
        qualname = ".".join(cls.__qualname__.split(".")[:-1] + [name])
        state_type = self._state_type(cls, name, qualname, names)

        container = self.config.container_attribute
        accessors = "".join(
            _ACCESSOR_TEMPLATE.format(
                index=index,
                name=prop,
                container=container,
                hook=_HOOK_TEMPLATE.format(hook=self.config.change_hook, name=prop) if verdict.change_hook else "",
            )
            for index, prop in enumerate(names)
        )
        commute = ""
        if verdict.commute:
            commute = _COMMUTE_TEMPLATE.format(method=self.config.commute_method, container=container)

        factory = context.reserve(name)
        context.add(
            _FACTORY_TEMPLATE.format(
                factory=factory,
                container=container,
                accessors=accessors,
                commute=commute,
                accessor_names="".join(f"({prop!r}, get_{prop}, set_{prop}), " for prop in names),
                commute_name=self.config.commute_method if verdict.commute else "None",
            ),
            owner=cls,
        )
        return EmissionPlan(verdict=verdict, name=name, qualname=qualname, factory=factory,
                            state_type=state_type, context=context)

    def build(self, plan: EmissionPlan) -> type:
        """
        Create the generated class for an emitted plan.

        Nothing is registered anywhere; a failure leaves no usable class behind.
        """
        cls = plan.source
        verdict = plan.verdict
        factory = plan.context.function(plan.factory)

        init, copier, accessors, commute = factory(
            cls,
            _own_copy(cls),
            plan.state_type,
            tuple(p.fset for p in verdict.properties),
            Shielded,
            in_transaction,
            enlist_commute,
            dataclasses.replace,
            self.config.max_retries,
        )

        info = GeneratedTypeInfo(
            source=cls,
            state_type=plan.state_type,
            properties=verdict.property_names,
            commute=verdict.commute,
            change_hook=verdict.change_hook,
            container_attribute=self.config.container_attribute,
        )
        namespace = {
            "__module__": cls.__module__,
            "__qualname__": plan.qualname,
            "__doc__": cls.__doc__,
            "__shielded_info__": info,
            "__init__": init,
            "__copy__": copier,
        }
        self._set_qualname(init, plan.qualname)
        self._set_qualname(copier, plan.qualname)
        for prop, (name, getter, setter) in zip(verdict.properties, accessors):
            self._set_qualname(getter, plan.qualname)
            self._set_qualname(setter, plan.qualname)
            namespace[name] = property(getter, setter, None, prop.doc)
        if commute is not None:
            self._set_qualname(commute, plan.qualname)
            namespace[self.config.commute_method] = commute

        try:
            generated = type(cls)(plan.name, (cls,), namespace)
        except Exception as e:
            raise EmissionError(cls, f"class construction failed: {e}") from e

        logger.debug(
            f"Emitted {plan.qualname} for {cls.__qualname__}: properties={list(info.properties)}, "
            f"commute={info.commute}, change_hook={info.change_hook}"
        )
        return generated

    def _check_names(self, cls: type, verdict: EligibilityVerdict) -> None:
        container = self.config.container_attribute
        if inspect.getattr_static(cls, container, None) is not None:
            raise EmissionError(cls, f"attribute {container!r} is reserved for the transactional container")

        reserved = {container, "__init__", "__copy__", "__shielded_info__"}
        if verdict.commute:
            reserved.add(self.config.commute_method)

        for name in verdict.property_names:
            if not name.isidentifier() or keyword.iskeyword(name):
                raise EmissionError(cls, f"property name {name!r} is not a valid slot name")
            if name in reserved:
                raise EmissionError(cls, f"property {name!r} collides with a generated member")

    @staticmethod
    def _state_type(cls: type, name: str, qualname: str, names: Tuple[str, ...]) -> type:
        try:
            state_type = make_dataclass(
                f"{name}State",
                [(prop, Any, field(default=None)) for prop in names],
                frozen=True,
                slots=True,
            )
        except (TypeError, ValueError) as e:
            raise EmissionError(cls, f"cannot build the container state: {e}") from e
        state_type.__module__ = cls.__module__
        state_type.__qualname__ = f"{qualname}State"
        return state_type

    @staticmethod
    def _set_qualname(function: Any, owner: str) -> None:
        function.__qualname__ = f"{owner}.{function.__name__}"


def _own_copy(cls: type) -> Optional[Any]:
    """``__copy__`` defined by the class or one of its bases, if any."""
    if inspect.getattr_static(cls, "__copy__", None) is None:
        return None
    return cls.__copy__
