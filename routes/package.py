"""
Package section routes.

Handles:
- /shipments/package - Edit package form fields
- /shipments/packages - Replace the package list
- /shipments/items - Replace the declared product list
- /shipments/price/calculate - Run the Calculate Price checks and quote

Every edit goes through the recomputation dispatcher, which keeps the
billable weight current and drops a price whose geometry changed.
"""

from typing import Any, Callable, Dict

from flask import Blueprint, request

from core.exceptions import PricingUnavailableError
from logging_config import get_logger
from models.shipment import Package, PackageItem
from modules.recompute import (
    ItemsReplaced,
    PackageChanged,
    PackagesReplaced,
    PriceCalculated,
)
from modules.sanitize import sanitize_text, to_bool, to_float, to_int
from modules.sections import check_ready_for_pricing
from routes.state import (
    apply_event,
    draft_response,
    error_response,
    load_draft,
    notify,
    service,
)


# Module logger
logger = get_logger(__name__)

package_bp = Blueprint("package", __name__)

# wire name -> (PackageForm attribute, parser)
PACKAGE_FORM_FIELDS: Dict[str, tuple] = {
    "packageLength": ("length", to_float),
    "packageWidth": ("width", to_float),
    "packageHeight": ("height", to_float),
    "packageWeight": ("weight", to_float),
    "pieceCount": ("piece_count", to_int),
    "itemCount": ("item_count", to_int),
    "customsValue": ("customs_value", to_int),
    "currency": ("currency", sanitize_text),
    "gtipCode": ("hs_code", sanitize_text),
    "serviceLevel": ("service_level", sanitize_text),
    "shippingTerms": ("shipping_terms", sanitize_text),
    "includeInsurance": ("include_insurance", to_bool),
}

ITEM_TEXT_FIELDS = ("name", "description", "hsCode", "gtipCode", "countryOfOrigin", "manufacturer")


def _clean(raw: Dict[str, Any], text_fields=ITEM_TEXT_FIELDS) -> Dict[str, Any]:
    return {
        key: sanitize_text(value) if key in text_fields else value
        for key, value in raw.items()
    }


def _parse_list(raw_list: Any, build: Callable[[Dict[str, Any]], Any]) -> tuple:
    if not isinstance(raw_list, list):
        return ()
    return tuple(build(raw) for raw in raw_list if isinstance(raw, dict))


def _package_from_request(raw: Dict[str, Any]) -> Package:
    raw = dict(raw)
    raw["items"] = [_clean(item) for item in raw.get("items") or [] if isinstance(item, dict)]
    raw["name"] = sanitize_text(raw.get("name"))
    return Package.from_dict(raw)


@package_bp.route("/shipments/package", methods=["POST"])
def update_package():
    """Apply edited package form fields."""
    data = request.get_json(silent=True) or {}
    draft = load_draft()

    changes = {
        attr: parse(data[wire])
        for wire, (attr, parse) in PACKAGE_FORM_FIELDS.items()
        if wire in data
    }
    if "packageContents" in data:
        draft = draft.set_package_contents(sanitize_text(data["packageContents"]))

    updated = apply_event(draft, PackageChanged(changes))
    for wire in PACKAGE_FORM_FIELDS:
        if wire in data:
            updated = updated.clear_field_error(wire)
    return draft_response(updated)


@package_bp.route("/shipments/packages", methods=["POST"])
def replace_packages():
    """Replace the package list."""
    data = request.get_json(silent=True) or {}
    packages = _parse_list(data.get("packages"), _package_from_request)
    logger.info(f"Replacing package list ({len(packages)} package(s))")
    return draft_response(apply_event(load_draft(), PackagesReplaced(packages)))


@package_bp.route("/shipments/items", methods=["POST"])
def replace_items():
    """Replace the declared product list."""
    data = request.get_json(silent=True) or {}
    items = _parse_list(data.get("items"), lambda raw: PackageItem.from_dict(_clean(raw)))
    logger.info(f"Replacing product list ({len(items)} item(s))")
    return draft_response(apply_event(load_draft(), ItemsReplaced(items)))


@package_bp.route("/shipments/price/calculate", methods=["POST"])
def calculate_price():
    """
    Quote the current draft.

    The Calculate Price checks run first; a failing check or a failed quote
    leaves the draft's existing price untouched.
    """
    transition = check_ready_for_pricing(load_draft())
    if not transition.ok:
        return error_response(transition.draft, transition.errors, status=400)

    draft = transition.draft
    try:
        price_details = service("PRICING_SERVICE").quote(draft)
    except PricingUnavailableError as e:
        logger.error(f"Price calculation failed: {e}")
        return error_response(draft, [e], status=502)

    updated = apply_event(draft, PriceCalculated(price_details)).expand("price").collapse("package")
    return draft_response(
        updated,
        [notify("success", "Price Calculated", f"{len(price_details.options)} service option(s) available")],
    )
