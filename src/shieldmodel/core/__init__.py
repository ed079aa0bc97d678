"""
ShieldModel Core Module

Type synthesis: deciding whether a class can be instrumented and emitting
its shielded proxy type.
"""

from .analyzer import EligibilityAnalyzer, is_generated_type, is_final
from .capabilities import Commutable, Observable
from .emission import EmissionContext
from .emitter import AccessorEmitter, EmissionPlan
from .models import EligibilityVerdict, GeneratedTypeInfo, IneligibilityReason, PropertyInfo

__all__ = [
    "EligibilityAnalyzer",
    "is_generated_type",
    "is_final",
    "Commutable",
    "Observable",
    "EmissionContext",
    "AccessorEmitter",
    "EmissionPlan",
    "EligibilityVerdict",
    "GeneratedTypeInfo",
    "IneligibilityReason",
    "PropertyInfo",
]
