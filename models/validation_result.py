"""
Address validation outcome models.

A ValidationOutcome is produced on a debounce timer thread and consumed by
the request thread that next polls for it. Frozen, so it is safe to hand
across threads.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional


class ValidationKind(Enum):
    """Which watcher produced the outcome."""

    POSTAL_CODE = "postal"
    ADDRESS = "address"


@dataclass(frozen=True)
class ValidationOutcome:
    """
    Result of one validation call.

    ``generation`` is the counter value the task was issued with; the
    coordinator only publishes outcomes whose generation is still current.
    """

    kind: ValidationKind
    generation: int
    is_valid: bool
    validated_value: str = ""
    """The value that was validated (memoized to avoid re-validation)."""

    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    address: Optional[str] = None
    error: Optional[str] = None
    deliverability: Optional[str] = None
    unavailable: bool = False
    """The collaborator could not be reached; no field error is set."""

    @property
    def error_field(self) -> str:
        if self.kind is ValidationKind.POSTAL_CODE:
            return "receiverPostalCode"
        return "receiverAddress"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "generation": self.generation,
            "isValid": self.is_valid,
            "validatedValue": self.validated_value,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "address": self.address,
            "error": self.error,
            "deliverability": self.deliverability,
            "unavailable": self.unavailable,
        }
