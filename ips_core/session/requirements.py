"""
Platform requirements check result.

The platform layer (Bluetooth enabled, location permission granted, ...)
reports its outcome as one RequirementsResult; positioning may only start
when the result is FULFILLED.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class RequirementsStatus(Enum):
    """Outcome of a platform requirements check."""

    FULFILLED = "fulfilled"
    MISSING = "missing"
    ERROR = "error"


@dataclass(frozen=True)
class RequirementsResult:
    """
    Result of a platform requirements check.

    Attributes:
        status: FULFILLED, MISSING or ERROR
        missing: Names of the missing requirements (MISSING only)
        error: Exception raised while checking (ERROR only)
    """

    status: RequirementsStatus
    missing: Tuple[str, ...] = ()
    error: Optional[BaseException] = None

    def __post_init__(self):
        if self.status is RequirementsStatus.MISSING and not self.missing:
            raise ValueError("MISSING result needs at least one missing requirement")
        if self.status is RequirementsStatus.ERROR and self.error is None:
            raise ValueError("ERROR result needs an error")

    @classmethod
    def fulfilled(cls) -> "RequirementsResult":
        return cls(RequirementsStatus.FULFILLED)

    @classmethod
    def missing_requirements(cls, *reasons: str) -> "RequirementsResult":
        return cls(RequirementsStatus.MISSING, missing=tuple(reasons))

    @classmethod
    def failed(cls, error: BaseException) -> "RequirementsResult":
        return cls(RequirementsStatus.ERROR, error=error)

    @property
    def is_fulfilled(self) -> bool:
        return self.status is RequirementsStatus.FULFILLED

    def describe(self) -> str:
        """Human-readable summary for logs and UI messages."""
        if self.status is RequirementsStatus.MISSING:
            return "Requirements missing: " + ", ".join(self.missing)
        if self.status is RequirementsStatus.ERROR:
            return f"Requirements check failed: {self.error}"
        return "Requirements fulfilled"
