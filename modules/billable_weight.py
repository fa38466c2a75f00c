"""
Billable (chargeable) weight for a list of packages.

Carriers charge for the greater of the actual weight and the volumetric
weight ``L x W x H / 5000`` (cm -> kg).

Several packages are quoted as one virtual parcel: weights are summed and
the summed volume is turned back into a cube whose edge (rounded to one
decimal) is sent to the pricing service as length, width and height.
This is a known approximation, not a carrier formula.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from models.shipment import Package, PackageForm, PackageItem


DEFAULT_VOLUMETRIC_DIVISOR = 5000.0


@dataclass(frozen=True)
class PackageTotals:
    """Figures the pricing request is built from."""

    length: float
    width: float
    height: float
    weight: float
    piece_count: int
    item_count: int
    volumetric_weight: float
    billable_weight: float


def volumetric_weight(
    length: float,
    width: float,
    height: float,
    divisor: float = DEFAULT_VOLUMETRIC_DIVISOR,
) -> float:
    """Volumetric weight in kg for dimensions in cm."""
    return (length * width * height) / divisor


def billable_weight(
    length: float,
    width: float,
    height: float,
    weight: float,
    divisor: float = DEFAULT_VOLUMETRIC_DIVISOR,
) -> float:
    """max(actual, volumetric). Never less than the actual weight."""
    return max(weight, volumetric_weight(length, width, height, divisor))


def total_quantity(items: Iterable[PackageItem]) -> int:
    return sum(item.quantity if item.quantity else 1 for item in items)


def compute_totals(
    packages: Sequence[Package],
    items: Iterable[PackageItem] = (),
    divisor: float = DEFAULT_VOLUMETRIC_DIVISOR,
) -> Optional[PackageTotals]:
    """
    Combine packages into the figures used for quoting.

    Args:
        packages: Parcels in the shipment
        items: Declared items (their quantities drive item_count)
        divisor: Volumetric divisor

    Returns:
        PackageTotals, or None when there are no packages
    """
    if not packages:
        return None

    quantity = total_quantity(items)

    if len(packages) == 1:
        package = packages[0]
        volumetric = volumetric_weight(package.length, package.width, package.height, divisor)
        return PackageTotals(
            length=package.length,
            width=package.width,
            height=package.height,
            weight=package.weight,
            piece_count=1,
            item_count=max(1, quantity),
            volumetric_weight=volumetric,
            billable_weight=max(package.weight, volumetric),
        )

    total_weight = round(sum(p.weight for p in packages), 2)
    total_volume = sum(p.volume for p in packages)
    edge = round(total_volume ** (1.0 / 3.0), 1) if total_volume > 0 else 0.0
    volumetric = volumetric_weight(edge, edge, edge, divisor)

    return PackageTotals(
        length=edge,
        width=edge,
        height=edge,
        weight=total_weight,
        piece_count=len(packages),
        item_count=max(len(packages), quantity),
        volumetric_weight=volumetric,
        billable_weight=round(max(total_weight, volumetric), 2),
    )


def totals_from_form(
    form: PackageForm,
    items: Iterable[PackageItem] = (),
    divisor: float = DEFAULT_VOLUMETRIC_DIVISOR,
) -> Optional[PackageTotals]:
    """Totals for a shipment described only by the package form fields."""
    if min(form.geometry) <= 0:
        return None
    volumetric = volumetric_weight(form.length, form.width, form.height, divisor)
    return PackageTotals(
        length=form.length,
        width=form.width,
        height=form.height,
        weight=form.weight,
        piece_count=max(1, form.piece_count),
        item_count=max(1, total_quantity(items)),
        volumetric_weight=volumetric,
        billable_weight=max(form.weight, volumetric),
    )
