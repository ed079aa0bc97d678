"""
ShieldModel Errors

Exceptions raised by the proxy generator. Eligibility and emission errors
always surface to the caller of the generation entry point.
"""

from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .core.models import EligibilityVerdict, IneligibilityReason


class ShieldModelError(Exception):
    """Base exception for ShieldModel errors"""
    pass


class IneligibleTypeError(ShieldModelError, TypeError):
    """Raised when a class cannot be turned into a shielded proxy type"""

    def __init__(self, source: Any, verdict: 'EligibilityVerdict', message: Optional[str] = None):
        self.source = source
        self.verdict = verdict
        super().__init__(message or f"Cannot generate a shielded type for {_type_name(source)}: {verdict.detail}")

    @property
    def reason(self) -> Optional['IneligibilityReason']:
        return self.verdict.reason


class EmissionError(ShieldModelError):
    """Raised when accessor code for an eligible class could not be produced"""

    def __init__(self, source: Any, message: str):
        self.source = source
        super().__init__(f"Emission failed for {_type_name(source)}: {message}")


class BatchPreparationError(IneligibleTypeError):
    """Raised when one member of a batch is ineligible; nothing from the batch is kept"""

    def __init__(self, source: Any, verdict: 'EligibilityVerdict'):
        super().__init__(
            source,
            verdict,
            f"Cannot prepare types: {_type_name(source)} is not eligible ({verdict.detail})",
        )


def _type_name(source: Any) -> str:
    if isinstance(source, type):
        return f"{source.__module__}.{source.__qualname__}"
    return repr(source)
