"""
Price quotes from the pricing collaborator.

Flow:
    1. Combine the draft's packages into one virtual parcel
    2. POST /pricing/options with the billable weight as packageWeight
    3. Turn the first option into PriceDetails; every option carries the
       response's duty estimate
    4. The caller dispatches PriceCalculated, which selects option 0 and
       runs the credit check

Usage:
    pricing_service = PricingService(client)
    price_details = pricing_service.quote(draft)
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict

from core.api_client import CollaboratorClient
from core.exceptions import PricingUnavailableError
from logging_config import get_logger
from models.shipment import DutyInfo, PriceDetails, ServiceOption, ShipmentDraft
from modules.billable_weight import DEFAULT_VOLUMETRIC_DIVISOR, compute_totals, totals_from_form


# Module logger
logger = get_logger(__name__)

GENERIC_PRODUCT_NAME = "General merchandise"
DUTY_PROVIDER = "ups"


class PricingService:
    """
    Builds pricing requests and parses quotes.

    Attributes:
        volumetric_divisor: cm^3 per kg-equivalent
    """

    def __init__(
        self,
        client: CollaboratorClient,
        volumetric_divisor: float = DEFAULT_VOLUMETRIC_DIVISOR,
    ):
        self._client = client
        self.volumetric_divisor = volumetric_divisor

    def build_request(self, draft: ShipmentDraft) -> Dict[str, Any]:
        """
        Pricing request body for the draft.

        Args:
            draft: Draft that passed the Calculate Price checks

        Returns:
            JSON-ready payload for POST /pricing/options
        """
        items = draft.all_items
        totals = compute_totals(draft.packages, items, self.volumetric_divisor)
        if totals is None:
            totals = totals_from_form(draft.package_form, items, self.volumetric_divisor)
        if totals is None:
            raise PricingUnavailableError(
                "Package dimensions are required to calculate a price",
                operation="calculate price",
            )

        form = draft.package_form
        first = items[0] if items else None

        return {
            "packageLength": totals.length,
            "packageWidth": totals.width,
            "packageHeight": totals.height,
            "packageWeight": totals.billable_weight,
            "pieceCount": totals.piece_count,
            "serviceLevel": form.service_level or "standard",
            "receiverCountry": draft.receiver.country,
            "senderPostalCode": draft.sender.postal_code,
            "senderCity": draft.sender.city,
            "receiverPostalCode": draft.receiver.postal_code,
            "receiverCity": draft.receiver.city,
            "includeInsurance": form.include_insurance,
            "customsValue": form.customs_value,
            "shippingTerms": form.shipping_terms,
            "productName": (first.name if first else "") or GENERIC_PRODUCT_NAME,
            "productDescription": first.description if first else "",
            "hsCode": first.hs_code if first else "",
            "dutyProvider": DUTY_PROVIDER if draft.receiver.country != "TR" else None,
        }

    def quote(self, draft: ShipmentDraft) -> PriceDetails:
        """
        Fetch a price quote for the draft.

        Returns:
            PriceDetails built from the first option

        Raises:
            PricingUnavailableError: Call failed or no options came back
        """
        payload = self.build_request(draft)
        logger.info(
            f"Requesting price: {payload['pieceCount']} piece(s), "
            f"{payload['packageWeight']} kg billable to {payload['receiverCountry']}"
        )

        response = self._client.pricing_options(payload) or {}
        price_details = self.parse_response(response)

        logger.info(
            f"Received {len(price_details.options)} option(s), "
            f"first total {price_details.total_price}"
        )
        return price_details

    @staticmethod
    def parse_response(response: Dict[str, Any]) -> PriceDetails:
        """
        Convert a pricing response into PriceDetails.

        Raises:
            PricingUnavailableError: success is false or options are empty
        """
        raw_options = response.get("options") or []
        if not response.get("success") or not raw_options:
            raise PricingUnavailableError(
                response.get("message") or "No pricing options available",
                operation="calculate price",
            )

        duties = DutyInfo.from_dict(response.get("duties") or response.get("dutyCalculations"))
        options = tuple(
            _with_duties(ServiceOption.from_dict(raw), duties) for raw in raw_options
        )
        first = options[0]

        return PriceDetails(
            base_price=first.base_price,
            fuel_charge=first.fuel_charge,
            total_price=first.total_price,
            service_level=first.service_type,
            applied_multiplier=first.applied_multiplier,
            original_base_price=first.original_base_price or first.base_price,
            original_fuel_charge=first.original_fuel_charge or first.fuel_charge,
            original_total_price=first.original_total_price or first.total_price,
            duties=duties,
            options=options,
        )


def _with_duties(option: ServiceOption, duties) -> ServiceOption:
    if option.duties is not None or duties is None:
        return option
    return replace(option, duties=duties)
