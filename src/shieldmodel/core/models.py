"""
Proxy Generation Models

Records passed between the eligibility analyzer, the accessor emitter and
the caches: what was found on a source class, whether it can be
instrumented, and what was generated for it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class IneligibilityReason(str, Enum):
    """Why a class cannot be instrumented."""
    NOT_A_CLASS = "not_a_class"
    SEALED = "sealed"
    ALREADY_GENERATED = "already_generated"
    NO_PARAMETERLESS_CONSTRUCTOR = "no_parameterless_constructor"
    NO_USABLE_PROPERTIES = "no_usable_properties"
    ABSTRACT_MEMBERS = "abstract_members"


class PropertyInfo(BaseModel):
    """A property selected for instrumentation."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    owner: Any
    fget: Callable[..., Any]
    fset: Callable[..., Any]
    doc: Optional[str] = None


class EligibilityVerdict(BaseModel):
    """Outcome of analysing one source class."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    source: Any
    eligible: bool
    reason: Optional[IneligibilityReason] = None
    detail: str = ""
    properties: Tuple[PropertyInfo, ...] = ()
    skipped: Tuple[str, ...] = ()
    commute: bool = False
    change_hook: bool = False

    @classmethod
    def reject(cls, source: Any, reason: IneligibilityReason, detail: str, **kwargs) -> 'EligibilityVerdict':
        return cls(source=source, eligible=False, reason=reason, detail=detail, **kwargs)

    @property
    def property_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.properties)

    def __bool__(self) -> bool:
        return self.eligible


@dataclass(frozen=True)
class GeneratedTypeInfo:
    """Attached to every generated class as ``__shielded_info__``."""
    source: type
    state_type: type
    properties: Tuple[str, ...]
    commute: bool
    change_hook: bool
    container_attribute: str
