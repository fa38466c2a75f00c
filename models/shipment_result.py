"""
Shipment result data models.

These models represent what the collaborator returns after a shipment is
created, and the invoice attached to it afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional


class ShipmentStatus(Enum):
    """
    Status of a created shipment.

    Lifecycle:
        PENDING -> (APPROVED | REJECTED)
    """

    PENDING = "pending"
    """Created, waiting for review."""

    APPROVED = "approved"
    """Approved; label can be generated."""

    REJECTED = "rejected"
    """Rejected by review."""

    FAILED = "failed"
    """Status the server reported that we do not recognise."""

    @classmethod
    def parse(cls, value: Optional[str]) -> "ShipmentStatus":
        try:
            return cls((value or "pending").lower())
        except ValueError:
            return cls.FAILED


@dataclass(frozen=True)
class InvoiceRecord:
    """An invoice PDF stored against a shipment."""

    filename: str
    uploaded_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"filename": self.filename, "uploadedAt": self.uploaded_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InvoiceRecord":
        return cls(
            filename=data.get("filename", "") or "",
            uploaded_at=data.get("uploadedAt", "") or "",
        )


@dataclass(frozen=True)
class ShipmentResult:
    """
    A shipment created from a submitted draft.

    The draft that produced it is superseded once this exists.
    """

    shipment_id: int
    """Identifier assigned by the collaborator."""

    status: ShipmentStatus
    """Review status."""

    label_reference: str = ""
    """Carrier label reference, when one has been issued."""

    carrier_name: str = ""
    total_price: int = 0
    invoice: Optional[InvoiceRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses and the session."""
        return {
            "id": self.shipment_id,
            "status": self.status.value,
            "labelReference": self.label_reference,
            "carrierName": self.carrier_name,
            "totalPrice": self.total_price,
            "invoice": self.invoice.to_dict() if self.invoice else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShipmentResult":
        """Create from a collaborator response."""
        invoice = None
        if data.get("invoiceFilename") or data.get("invoice"):
            invoice = InvoiceRecord.from_dict(
                data.get("invoice") or {
                    "filename": data.get("invoiceFilename"),
                    "uploadedAt": data.get("invoiceUploadedAt"),
                }
            )
        return cls(
            shipment_id=int(data.get("id", 0)),
            status=ShipmentStatus.parse(data.get("status")),
            label_reference=str(data.get("labelUrl") or data.get("trackingNumber") or ""),
            carrier_name=data.get("carrierName", "") or "",
            total_price=int(data.get("totalPrice") or 0),
            invoice=invoice,
        )
