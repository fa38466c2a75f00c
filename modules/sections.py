"""
Wizard sections and their completion rules.

The wizard has three sections: recipient, package and price. Any of them
may be expanded at once; completion is always recomputed from the current
draft, never remembered.

Transitions:
    Continue (recipient)   validate the recipient subset, then
                           expand package, collapse recipient
    Calculate Price        package form -> contents -> items -> packages,
                           then price, expand price, collapse package
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from core.exceptions import FormValidationError
from models.shipment import SECTIONS, ShipmentDraft
from modules.countries import has_states
from modules.sanitize import MAX_ADDRESS_LINE_LENGTH


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_DIMENSION_CM = 1
MIN_WEIGHT_KG = 0.1
SHIPPING_TERMS = ("dap", "ddp")


# =============================================================================
# COMPLETION PREDICATES
# =============================================================================

def is_recipient_complete(draft: ShipmentDraft) -> bool:
    receiver, sender = draft.receiver, draft.sender
    return all((
        receiver.name,
        receiver.phone,
        receiver.address,
        receiver.city,
        receiver.postal_code,
        draft.package_contents,
        receiver.country,
        sender.name,
        sender.address,
    ))


def is_package_complete(draft: ShipmentDraft) -> bool:
    form = draft.package_form
    return min(form.geometry) > 0 and bool(form.service_level)


def is_price_complete(draft: ShipmentDraft) -> bool:
    return draft.price_details is not None


COMPLETION: Dict[str, Callable[[ShipmentDraft], bool]] = {
    "recipient": is_recipient_complete,
    "package": is_package_complete,
    "price": is_price_complete,
}


def section_status(draft: ShipmentDraft) -> Dict[str, Dict[str, bool]]:
    """Expanded/complete flags for every section."""
    return {
        name: {"expanded": name in draft.expanded, "complete": COMPLETION[name](draft)}
        for name in SECTIONS
    }


def all_sections_complete(draft: ShipmentDraft) -> bool:
    return all(check(draft) for check in COMPLETION.values())


def toggle_section(draft: ShipmentDraft, name: str) -> ShipmentDraft:
    """
    Expand a collapsed section or collapse an expanded one.

    Raises:
        ValueError: Unknown section name
    """
    if name not in SECTIONS:
        raise ValueError(f"Unknown section: {name}")
    if name in draft.expanded:
        return draft.collapse(name)
    return draft.expand(name)


# =============================================================================
# RECIPIENT STEP
# =============================================================================

# (form field, getter, message) checked by Continue, in display order
_RECIPIENT_REQUIRED: Tuple[Tuple[str, Callable[[ShipmentDraft], str], str], ...] = (
    ("receiverName", lambda d: d.receiver.name, "Receiver name is required"),
    ("receiverPhone", lambda d: d.receiver.phone, "Receiver phone is required"),
    ("receiverAddress", lambda d: d.receiver.address, "Receiver address is required"),
    ("receiverCity", lambda d: d.receiver.city, "Receiver city is required"),
    ("receiverPostalCode", lambda d: d.receiver.postal_code, "Receiver postal code is required"),
    ("senderName", lambda d: d.sender.name, "Sender name is required"),
    ("senderAddress", lambda d: d.sender.address, "Sender address is required"),
    ("receiverCountry", lambda d: d.receiver.country, "Destination country is required"),
)


def validate_recipient_step(draft: ShipmentDraft) -> List[FormValidationError]:
    """Errors for the fields Continue checks, plus the receiver schema rules."""
    errors = [
        FormValidationError(message, field=name)
        for name, getter, message in _RECIPIENT_REQUIRED
        if not str(getter(draft)).strip()
    ]

    receiver, sender = draft.receiver, draft.sender
    if receiver.email and not EMAIL_PATTERN.match(receiver.email):
        errors.append(FormValidationError("Enter a valid email address", field="receiverEmail"))
    if receiver.country and has_states(receiver.country) and not receiver.state.strip():
        errors.append(FormValidationError("State/province is required", field="receiverState"))
    if len(sender.address1) > MAX_ADDRESS_LINE_LENGTH:
        errors.append(FormValidationError(
            f"Address line 1 must be at most {MAX_ADDRESS_LINE_LENGTH} characters",
            field="senderAddress1",
        ))
    if len(sender.address2) > MAX_ADDRESS_LINE_LENGTH:
        errors.append(FormValidationError(
            f"Address line 2 must be at most {MAX_ADDRESS_LINE_LENGTH} characters",
            field="senderAddress2",
        ))
    return errors


@dataclass(frozen=True)
class Transition:
    draft: ShipmentDraft
    errors: Tuple[FormValidationError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


def _with_errors(draft: ShipmentDraft, errors: List[FormValidationError], fields: Tuple[str, ...]) -> ShipmentDraft:
    for name in fields:
        draft = draft.clear_field_error(name)
    for error in errors:
        if error.field:
            draft = draft.with_field_error(error.field, error.message)
    return draft


def continue_from_recipient(draft: ShipmentDraft) -> Transition:
    """Validate the recipient section and move on to the package section."""
    errors = validate_recipient_step(draft)
    checked = tuple(name for name, _, _ in _RECIPIENT_REQUIRED) + (
        "receiverEmail", "receiverState", "senderAddress1", "senderAddress2",
    )
    draft = _with_errors(draft, errors, checked)
    if errors:
        return Transition(draft, tuple(errors))
    return Transition(draft.expand("package").collapse("recipient"))


# =============================================================================
# PACKAGE STEP
# =============================================================================

_PACKAGE_FIELDS = (
    "receiverCountry", "packageLength", "packageWidth", "packageHeight",
    "packageWeight", "pieceCount", "itemCount", "customsValue",
    "shippingTerms", "serviceLevel",
)


def validate_package_form(draft: ShipmentDraft) -> List[FormValidationError]:
    form = draft.package_form
    errors = []
    if not draft.receiver.country:
        errors.append(FormValidationError("Destination country is required", field="receiverCountry"))
    for name, value in (
        ("packageLength", form.length),
        ("packageWidth", form.width),
        ("packageHeight", form.height),
    ):
        if value < MIN_DIMENSION_CM:
            errors.append(FormValidationError(f"Must be at least {MIN_DIMENSION_CM} cm", field=name))
    if form.weight < MIN_WEIGHT_KG:
        errors.append(FormValidationError(f"Must be at least {MIN_WEIGHT_KG} kg", field="packageWeight"))
    if form.piece_count < 1:
        errors.append(FormValidationError("At least one piece is required", field="pieceCount"))
    if form.item_count < 1:
        errors.append(FormValidationError("At least one item is required", field="itemCount"))
    if form.customs_value < 0:
        errors.append(FormValidationError("Customs value cannot be negative", field="customsValue"))
    if form.shipping_terms not in SHIPPING_TERMS:
        errors.append(FormValidationError("Choose DAP or DDP", field="shippingTerms"))
    if not form.service_level:
        errors.append(FormValidationError("Service level is required", field="serviceLevel"))
    return errors


def check_ready_for_pricing(draft: ShipmentDraft) -> Transition:
    """
    Run the Calculate Price checks in order.

    1. package form fields
    2. package contents
    3. at least one product, every product valid
    4. at least one package

    Returns:
        Transition whose errors hold every package form error, or the single
        rule that failed further down the list
    """
    errors = validate_package_form(draft)
    draft = _with_errors(draft, errors, _PACKAGE_FIELDS + ("packageContents",))
    if errors:
        return Transition(draft, tuple(errors))

    if not draft.package_contents.strip():
        error = FormValidationError(
            "Please describe the package contents",
            field="packageContents",
            title="Package contents required",
        )
        return Transition(draft.with_field_error(error.field, error.message), (error,))

    items = draft.all_items
    if not items:
        return Transition(draft, (FormValidationError(
            "Please add at least one product before calculating the price",
            title="Products Required",
        ),))
    for index, item in enumerate(items, start=1):
        if len(item.name.strip()) < 3:
            return Transition(draft, (FormValidationError(
                f"Product {index}: product name too short (minimum 3 characters)",
                title="Invalid product",
            ),))
        if len(item.hs_code.strip()) < 6:
            return Transition(draft, (FormValidationError(
                f"Product {index}: HTS code required (minimum 6 characters)",
                title="Invalid product",
            ),))

    if not draft.packages:
        return Transition(draft, (FormValidationError(
            "Please add at least one package", title="Missing packages"
        ),))

    return Transition(draft)
