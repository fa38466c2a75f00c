"""
Custom exceptions for ShipmentCreateWeb.

Exception Hierarchy:
    ShipmentCreateError (base)
    ├── FormValidationError        - Missing/invalid field (field-scoped, non-fatal)
    ├── InvoiceConstraintError     - Invoice wrong type/too large (before any network call)
    ├── StalePriceError            - Submission without a current price
    ├── AdmissionDeniedError       - Credit warning / no option / no credit info
    └── CollaboratorError          - Network or HTTP failure talking to a collaborator
        ├── PricingUnavailableError
        ├── AddressValidationError
        ├── DraftPersistenceError
        ├── ShipmentSubmissionError
        └── InvoiceStorageError

Usage:
    Routes catch these at the call site and turn them into notifications.
    Nothing here is fatal to the process; the user re-attempts the action.
"""

from typing import Optional, Dict, Any


class ShipmentCreateError(Exception):
    """
    Base exception for all ShipmentCreateWeb errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_notification(self) -> Dict[str, Any]:
        """Render as a user-facing notification dict."""
        return {
            "level": "error",
            "title": self.details.get("title", "Error"),
            "message": self.message,
        }


# =============================================================================
# VALIDATION ERRORS - block only the next transition
# =============================================================================

class FormValidationError(ShipmentCreateError):
    """
    A required field is missing or invalid.

    ``field`` names the offending form field (None when the rule spans the
    whole form, e.g. "at least one package").
    """

    def __init__(self, message: str, field: Optional[str] = None, title: str = "Validation Error"):
        details = {"title": title}
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.field = field
        self.title = title

    def to_notification(self) -> Dict[str, Any]:
        notification = super().to_notification()
        if self.field:
            notification["field"] = self.field
        return notification


class InvoiceConstraintError(ShipmentCreateError):
    """
    Invoice file rejected before upload.

    Typical causes:
    - Not a PDF
    - Larger than INVOICE_MAX_BYTES
    - PDF could not be read
    """

    def __init__(self, message: str, filename: Optional[str] = None):
        details = {"title": "Invalid Invoice"}
        if filename:
            details["filename"] = filename
        super().__init__(message, details)
        self.filename = filename


# =============================================================================
# ADMISSION ERRORS - submission gate
# =============================================================================

class StalePriceError(ShipmentCreateError):
    """No current price; package geometry changed or price never calculated."""

    def __init__(self, message: str = "Please calculate the price before submitting"):
        super().__init__(message, {"title": "Price Required"})


class AdmissionDeniedError(ShipmentCreateError):
    """
    Submission blocked by admission control.

    Raised when the credit check warns, when no credit information could be
    fetched, or when no service option is selected.
    """

    def __init__(self, message: str, shortfall: Optional[int] = None):
        details: Dict[str, Any] = {"title": "Credit Limit"}
        if shortfall is not None:
            details["shortfall"] = shortfall
        super().__init__(message, details)
        self.shortfall = shortfall


# =============================================================================
# COLLABORATOR FAILURES - reported, prior state preserved
# =============================================================================

class CollaboratorError(ShipmentCreateError):
    """
    Base class for failures talking to an external collaborator.

    Covers connection errors, non-2xx responses and undecodable bodies.
    No retry is attempted at this layer.
    """

    title = "Request Failed"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ):
        error_details = dict(details or {})
        error_details.setdefault("title", self.title)
        if operation:
            error_details["operation"] = operation
        if status_code is not None:
            error_details["status_code"] = status_code
        super().__init__(message, error_details)
        self.operation = operation
        self.status_code = status_code
        self.body = body


class PricingUnavailableError(CollaboratorError):
    """Pricing service failed or returned no options."""
    title = "Price Calculation Failed"


class AddressValidationError(CollaboratorError):
    """Address or postal code validation call failed."""
    title = "Address Validation Failed"


class DraftPersistenceError(CollaboratorError):
    """Draft save/load or shipment copy failed."""
    title = "Draft Error"


class ShipmentSubmissionError(CollaboratorError):
    """Shipment creation was rejected or failed."""
    title = "Shipment Creation Failed"


class InvoiceStorageError(CollaboratorError):
    """Invoice upload or delete failed."""
    title = "Invoice Error"
