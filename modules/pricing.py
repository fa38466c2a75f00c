"""
Cost breakdown and duty rules for a selected service option.

All amounts are integer minor units (cents).

TOTAL COST BY INCOTERM:
    DAP (any country)   shipping + insurance
                        duties shown as informational, paid by the receiver
    DDP, US destination shipping + insurance + (duty + fee, or fee alone when
                        the duty is zero)
    DDP, elsewhere      shipping + insurance, no processing fee

The processing fee is 45 for economy services (display name contains
"eco"/"eko") and 450 otherwise.

Usage:
    breakdown = compute_cost_breakdown(
        option, include_insurance=True, insurance_value=25000,
        receiver_country="US", shipping_terms="ddp",
    )
    breakdown.total_cost
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from models.shipment import DutyInfo, ServiceOption


INSURANCE_RATE = 0.01
DDP_PROCESSING_FEE_STANDARD = 450
DDP_PROCESSING_FEE_ECO = 45

# Simple-shape split applied when only a total estimate exists (submission only)
SIMPLE_BASE_DUTY_RATE = 0.10
SIMPLE_TARIFF_RATE = 0.133

US_DESTINATIONS = ("US", "USA", "UNITED STATES")

DEFAULT_PROVIDER = "platform"
DEFAULT_CARRIER_NAME = "Standard Carrier"


@dataclass(frozen=True)
class CostLine:
    """One row of the price breakdown."""

    kind: str
    label: str
    amount: int
    display: Optional[str] = None
    """Overrides the formatted amount (e.g. "Free")."""
    informational: bool = False
    """Shown but not added to the total."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "label": self.label,
            "amount": self.amount,
            "display": self.display,
            "informational": self.informational,
        }


@dataclass(frozen=True)
class CostBreakdown:
    shipping_cost: int = 0
    insurance_cost: int = 0
    duty_amount: int = 0
    base_duty: int = 0
    tariff: int = 0
    processing_fee: int = 0
    duty_included: int = 0
    total_cost: int = 0
    duties_informational: bool = False
    provenance: Optional[str] = None
    notes: Tuple[str, ...] = ()
    lines: Tuple[CostLine, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shippingCost": self.shipping_cost,
            "insuranceCost": self.insurance_cost,
            "dutyAmount": self.duty_amount,
            "baseDuty": self.base_duty,
            "tariff": self.tariff,
            "processingFee": self.processing_fee,
            "dutyIncluded": self.duty_included,
            "totalCost": self.total_cost,
            "dutiesInformational": self.duties_informational,
            "provenance": self.provenance,
            "notes": list(self.notes),
            "lines": [line.to_dict() for line in self.lines],
        }


# =============================================================================
# BUILDING BLOCKS
# =============================================================================

def insurance_cost(include_insurance: bool, insurance_value: int, rate: float = INSURANCE_RATE) -> int:
    """Flat percentage of the declared value, rounded to a whole minor unit."""
    if include_insurance and insurance_value and insurance_value > 0:
        return int(round(insurance_value * rate))
    return 0


def extract_duty_amount(duties: Optional[DutyInfo]) -> int:
    """
    Duty in minor units.

    Detailed shape: base + tariff (already minor units).
    Simple shape: estimatedDuty is major units, scaled by 100.
    """
    if duties is None or not duties.available:
        return 0
    if duties.is_detailed:
        return int(round((duties.base_duty_amount or 0) + (duties.tariff_amount or 0)))
    if duties.estimated_duty:
        return int(round(duties.estimated_duty * 100))
    return 0


def is_eco_service(option: Optional[ServiceOption]) -> bool:
    if option is None:
        return False
    name = option.display_name.lower()
    return "eco" in name or "eko" in name


def is_us_destination(country: Optional[str]) -> bool:
    return (country or "").strip().upper() in US_DESTINATIONS


def ddp_processing_fee(
    option: Optional[ServiceOption],
    receiver_country: Optional[str],
    shipping_terms: Optional[str],
    standard_fee: int = DDP_PROCESSING_FEE_STANDARD,
    eco_fee: int = DDP_PROCESSING_FEE_ECO,
) -> int:
    """Fee for US duty-paid shipments; zero everywhere else and for DAP."""
    if (receiver_country or "").strip().upper() != "US":
        return 0
    if (shipping_terms or "").lower() != "ddp":
        return 0
    return eco_fee if is_eco_service(option) else standard_fee


def duty_provenance(duties: Optional[DutyInfo]) -> Optional[str]:
    """Where the duty figure came from, for display under the breakdown."""
    if duties is None or not duties.available:
        return None
    provider = duties.provider
    if provider == "USITC":
        verdict = "verified" if duties.source == "official" else "fallback"
        return f"Official USITC rates ({verdict})"
    if provider == "OpenAI" and duties.confidence:
        return f"AI calculated ({round(duties.confidence * 100)}% confidence)"
    return "Estimated duties"


def _duty_notes(duties: Optional[DutyInfo]) -> Tuple[str, ...]:
    if duties is None or not duties.available:
        return ()
    notes = []
    if duties.message:
        notes.append(duties.message)
    if duties.provider == "USITC" and duties.hs_code:
        notes.append(f"HS code: {duties.hs_code}")
    if duties.provider == "USITC" and duties.tariff_rate:
        notes.append("Includes additional US tariffs")
    return tuple(notes)


# =============================================================================
# BREAKDOWN
# =============================================================================

def compute_cost_breakdown(
    option: Optional[ServiceOption],
    include_insurance: bool,
    insurance_value: int,
    receiver_country: Optional[str],
    shipping_terms: Optional[str],
    insurance_rate: float = INSURANCE_RATE,
    standard_fee: int = DDP_PROCESSING_FEE_STANDARD,
    eco_fee: int = DDP_PROCESSING_FEE_ECO,
) -> CostBreakdown:
    """
    Derive the full cost breakdown for the selected option.

    Args:
        option: Selected service option (None renders an empty breakdown)
        include_insurance: Whether the shipment is insured
        insurance_value: Declared value in minor units
        receiver_country: ISO country code of the destination
        shipping_terms: "dap" or "ddp"

    Returns:
        CostBreakdown with line items and provenance text
    """
    if option is None:
        return CostBreakdown()

    terms = (shipping_terms or "").lower()
    duties = option.duties
    shipping = option.total_price
    insurance = insurance_cost(include_insurance, insurance_value, insurance_rate)
    duty_amount = extract_duty_amount(duties)
    fee = ddp_processing_fee(option, receiver_country, terms, standard_fee, eco_fee)

    us_ddp = terms == "ddp" and (receiver_country or "").strip().upper() == "US"
    if us_ddp:
        duty_included = duty_amount + fee if duty_amount > 0 else fee
    else:
        duty_included = 0

    if duties is not None and duties.available and duties.is_detailed:
        base_duty = int(round(duties.base_duty_amount or 0))
        tariff = int(round(duties.tariff_amount or 0))
    else:
        base_duty, tariff = duty_amount, 0

    informational = terms == "dap"

    lines = [CostLine("shipping", "Shipping", shipping)]
    if insurance:
        lines.append(CostLine("insurance", "Insurance", insurance))

    if duties is not None and duties.available:
        if duty_amount == 0:
            lines.append(CostLine("duty_total", "Duties", 0, display="Free", informational=informational))
        else:
            if tariff:
                lines.append(CostLine("base_duty", "Base duty", base_duty, informational=informational))
                lines.append(CostLine("tariff", "Additional tariff", tariff, informational=informational))
            label = "Duties (paid by receiver on delivery)" if informational else "Duties"
            lines.append(CostLine("duty_total", label, duty_amount, informational=informational))

    if fee:
        lines.append(CostLine("processing_fee", "DDP processing fee", fee))

    total = shipping + insurance + duty_included
    lines.append(CostLine("total", "Total", total))

    return CostBreakdown(
        shipping_cost=shipping,
        insurance_cost=insurance,
        duty_amount=duty_amount,
        base_duty=base_duty,
        tariff=tariff,
        processing_fee=fee,
        duty_included=duty_included,
        total_cost=total,
        duties_informational=informational and duty_amount > 0,
        provenance=duty_provenance(duties),
        notes=_duty_notes(duties),
        lines=tuple(lines),
    )


# =============================================================================
# SUBMISSION HELPERS
# =============================================================================

@dataclass(frozen=True)
class DutySplit:
    """Duty figures sent with a DDP shipment (minor units)."""

    base_duty: int
    tariff: int
    total: int
    processing_fee: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "ddpBaseDutiesAmount": self.base_duty,
            "ddpTrumpTariffsAmount": self.tariff,
            "ddpDutiesAmount": self.total,
            "ddpProcessingFee": self.processing_fee,
        }


def split_ddp_duties(
    option: Optional[ServiceOption],
    customs_value: int,
    receiver_country: Optional[str],
    shipping_terms: Optional[str],
    standard_fee: int = DDP_PROCESSING_FEE_STANDARD,
    eco_fee: int = DDP_PROCESSING_FEE_ECO,
) -> Optional[DutySplit]:
    """
    Base/tariff split recorded on a US duty-paid shipment.

    The detailed shape is passed through. With only a total estimate, the
    split is derived from the customs value at 10% base and 13.3% tariff;
    this does not reconcile with the estimate shown in the breakdown.

    Returns:
        DutySplit, or None when the shipment is not US DDP or no duty
        data is available
    """
    if option is None or option.duties is None or not option.duties.available:
        return None
    if (shipping_terms or "").lower() != "ddp" or not is_us_destination(receiver_country):
        return None

    duties = option.duties
    if duties.is_detailed:
        base = int(round(duties.base_duty_amount or 0))
        tariff = int(round(duties.tariff_amount or 0))
    elif duties.estimated_duty:
        customs_major = customs_value / 100
        base = int(round(customs_major * SIMPLE_BASE_DUTY_RATE * 100))
        tariff = int(round(customs_major * SIMPLE_TARIFF_RATE * 100))
    else:
        base, tariff = 0, 0

    fee = eco_fee if is_eco_service(option) else standard_fee
    return DutySplit(base_duty=base, tariff=tariff, total=base + tariff, processing_fee=fee)


def derive_provider(option: Optional[ServiceOption], carrier_name: str = "") -> Tuple[str, str]:
    """
    Shipping provider and carrier name for the selected service.

    Returns:
        (shippingProvider, carrierName)
    """
    if option is None:
        return DEFAULT_PROVIDER, carrier_name or DEFAULT_CARRIER_NAME
    code = (
        option.provider_service_code
        or option.service_code
        or option.service_type
        or option.display_name
    ).lower()
    if "afs" in code:
        return "afs", "AFS Transport"
    if "aramex" in code:
        return "aramex", "Aramex"
    return DEFAULT_PROVIDER, carrier_name or DEFAULT_CARRIER_NAME
