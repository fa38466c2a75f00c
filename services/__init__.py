"""
Services layer for ShipmentCreateWeb.

This module contains the collaborator-facing services:
- PricingService: Price quotes
- CreditService: Balance lookups for admission control
- DraftService: Draft save/load, copy from previous shipments, address book
- ShipmentService: Submission and invoices
- AddressValidationCoordinator: Debounced address/postal validation

Thread Model:
    Main Thread (Flask)
    └── Validation timer threads (one per pending field)

All services share one CollaboratorClient created in create_app().
"""

from .pricing_service import PricingService
from .credit_service import CreditService
from .draft_service import DraftService
from .shipment_service import ShipmentService
from .validation_coordinator import AddressValidationCoordinator, ValidationOutcomeStore

__all__ = [
    "PricingService",
    "CreditService",
    "DraftService",
    "ShipmentService",
    "AddressValidationCoordinator",
    "ValidationOutcomeStore",
]
