"""
Core module for ShipmentCreateWeb.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- api_client: HTTP client for the collaborator API
"""

from .exceptions import (
    ShipmentCreateError,
    FormValidationError,
    InvoiceConstraintError,
    StalePriceError,
    AdmissionDeniedError,
    CollaboratorError,
    PricingUnavailableError,
    AddressValidationError,
    DraftPersistenceError,
    ShipmentSubmissionError,
    InvoiceStorageError,
)
from .api_client import CollaboratorClient

__all__ = [
    "ShipmentCreateError",
    "FormValidationError",
    "InvoiceConstraintError",
    "StalePriceError",
    "AdmissionDeniedError",
    "CollaboratorError",
    "PricingUnavailableError",
    "AddressValidationError",
    "DraftPersistenceError",
    "ShipmentSubmissionError",
    "InvoiceStorageError",
    "CollaboratorClient",
]
