"""
Data models for ShipmentCreateWeb.

This module contains immutable dataclasses for:
- ShipmentDraft: the in-progress shipment aggregate and its parts
- PriceDetails / ServiceOption / DutyInfo: a price quote
- CreditLimitInfo: admission control outcome
- ShipmentResult: a created shipment
- ValidationOutcome: result of an address/postal validation task

Everything is frozen so snapshots can be passed to timer threads and
compared before/after a mutation.
"""

from .shipment import (
    SECTIONS,
    CreditLimitInfo,
    DutyInfo,
    Package,
    PackageForm,
    PackageItem,
    PriceDetails,
    Receiver,
    Sender,
    ServiceOption,
    ShipmentDraft,
)
from .shipment_result import InvoiceRecord, ShipmentResult, ShipmentStatus
from .validation_result import ValidationKind, ValidationOutcome

__all__ = [
    "SECTIONS",
    # Draft models
    "ShipmentDraft",
    "Sender",
    "Receiver",
    "Package",
    "PackageItem",
    "PackageForm",
    # Pricing models
    "PriceDetails",
    "ServiceOption",
    "DutyInfo",
    "CreditLimitInfo",
    # Results
    "ShipmentResult",
    "ShipmentStatus",
    "InvoiceRecord",
    "ValidationKind",
    "ValidationOutcome",
]
