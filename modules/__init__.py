"""Domain modules for the ShipmentCreateWeb application."""

__all__ = [
    "billable_weight",
    "countries",
    "credit",
    "invoice_inspector",
    "pricing",
    "recompute",
    "sanitize",
    "sections",
]
