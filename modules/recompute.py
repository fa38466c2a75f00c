"""
Explicit recomputation graph for the shipment draft.

Every change to the draft is expressed as an event. dispatch() applies the
event and then runs the derived-state steps in a fixed order:

    [1/3] billable weight   recompute from packages (or the package form)
    [2/3] stale price       drop the quote if any package or the form geometry changed
    [3/3] admission         re-run the credit check for the selected option

Normalization writes (e.g. a validated postal code) are plain receiver
updates and never reach this dispatcher, so they cannot loop back into it.

Usage:
    draft = dispatch(draft, PackageChanged({"weight": 3.5}), credit_lookup)
    draft = dispatch(draft, OptionSelected("Express", 2450), credit_lookup)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional, Tuple, Union

from logging_config import get_logger
from models.shipment import (
    CreditLimitInfo,
    Package,
    PackageItem,
    PriceDetails,
    ShipmentDraft,
)
from modules.billable_weight import (
    DEFAULT_VOLUMETRIC_DIVISOR,
    compute_totals,
    totals_from_form,
)


# Module logger
logger = get_logger(__name__)

CreditLookup = Callable[[int], Optional[CreditLimitInfo]]

GEOMETRY_FIELDS = ("length", "width", "height", "weight")


# =============================================================================
# EVENTS
# =============================================================================

@dataclass(frozen=True)
class PackageChanged:
    """Package form fields edited (snake_case PackageForm attribute names)."""
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PackagesReplaced:
    packages: Tuple[Package, ...] = ()


@dataclass(frozen=True)
class ItemsReplaced:
    items: Tuple[PackageItem, ...] = ()


@dataclass(frozen=True)
class PriceCalculated:
    """A fresh quote; the first option is selected."""
    price_details: PriceDetails


@dataclass(frozen=True)
class OptionSelected:
    display_name: str
    total_price: int


@dataclass(frozen=True)
class DraftLoaded:
    """The whole draft was replaced (draft load or copy)."""
    draft: ShipmentDraft


Event = Union[PackageChanged, PackagesReplaced, ItemsReplaced, PriceCalculated, OptionSelected, DraftLoaded]

# Events whose resulting price is current by construction
PRICE_KEEPING_EVENTS = (PriceCalculated, OptionSelected, DraftLoaded)


# =============================================================================
# DISPATCHER
# =============================================================================

def dispatch(
    draft: ShipmentDraft,
    event: Event,
    credit_lookup: Optional[CreditLookup] = None,
    divisor: float = DEFAULT_VOLUMETRIC_DIVISOR,
) -> ShipmentDraft:
    """
    Apply one event and recompute derived state.

    Args:
        draft: Current snapshot
        event: What changed
        credit_lookup: price -> CreditLimitInfo (None on failure); skipped
            when not given
        divisor: Volumetric divisor

    Returns:
        The next snapshot

    Raises:
        ValueError: OptionSelected for an option not in the current quote
    """
    event_name = type(event).__name__
    logger.debug(f"Dispatching {event_name}")

    quoted = price_fingerprint(draft)
    updated = _apply(draft, event)

    # [1/3] billable weight
    updated = _recompute_billable(updated, divisor)
    logger.info(f"[1/3] {event_name}: billable weight {updated.billable_weight}")

    # [2/3] stale price
    if updated.price_details is not None and not isinstance(event, PRICE_KEEPING_EVENTS):
        if price_fingerprint(updated) != quoted:
            logger.info(f"[2/3] {event_name}: package geometry changed, price invalidated")
            updated = updated.with_price(None)
        else:
            logger.debug(f"[2/3] {event_name}: price still current")

    # [3/3] admission
    if isinstance(event, (PriceCalculated, OptionSelected)) and credit_lookup is not None:
        option = updated.selected_option
        credit = credit_lookup(option.total_price) if option is not None else None
        updated = updated.with_credit(credit)
        if credit is None:
            logger.info(f"[3/3] {event_name}: no credit information, submission blocked")
        else:
            logger.info(
                f"[3/3] {event_name}: new balance {credit.new_balance}, "
                f"warning={credit.has_warning}"
            )

    return updated


def price_fingerprint(draft: ShipmentDraft) -> Tuple[Any, ...]:
    """
    Everything a quote depends on physically.

    The derived form geometry alone is not enough with several packages:
    different parcels can share a cube edge and summed weight.
    """
    form = draft.package_form
    parcels = tuple((p.length, p.width, p.height, p.weight) for p in draft.packages)
    return (form.geometry, form.piece_count, parcels)


def _apply(draft: ShipmentDraft, event: Event) -> ShipmentDraft:
    if isinstance(event, PackageChanged):
        updated = draft.set_package(**event.changes)
        geometry_changes = {k: v for k, v in event.changes.items() if k in GEOMETRY_FIELDS}
        # A single package is edited through the form fields
        if geometry_changes and len(draft.packages) == 1:
            updated = updated.set_packages([replace(draft.packages[0], **geometry_changes)])
        return updated

    if isinstance(event, PackagesReplaced):
        return draft.set_packages(event.packages)

    if isinstance(event, ItemsReplaced):
        return draft.set_items(event.items)

    if isinstance(event, PriceCalculated):
        options = event.price_details.options
        return draft.with_price(event.price_details, options[0] if options else None)

    if isinstance(event, OptionSelected):
        return draft.select_service_option(event.display_name, event.total_price)

    if isinstance(event, DraftLoaded):
        return event.draft

    raise TypeError(f"Unknown event: {event!r}")


def _recompute_billable(draft: ShipmentDraft, divisor: float) -> ShipmentDraft:
    items = draft.all_items
    totals = compute_totals(draft.packages, items, divisor)
    if totals is not None:
        draft = draft.set_package(
            length=totals.length,
            width=totals.width,
            height=totals.height,
            weight=totals.weight,
            piece_count=totals.piece_count,
            item_count=totals.item_count,
        )
    else:
        totals = totals_from_form(draft.package_form, items, divisor)
    return draft.with_billable_weight(totals.billable_weight if totals else None)
