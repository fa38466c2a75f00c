"""
Shipment data models.

These models represent an in-progress shipment as it moves through the
creation wizard: recipient -> package -> price -> submit.

Money:
    All prices, duties, balances and the customs value are integer minor
    units (cents). The only exception is PackageItem.unit_price, which is
    entered by the user in major units and converted at the edges.

Immutability:
    Every model here is a frozen dataclass. ShipmentDraft is the aggregate
    root; its mutation methods return the next snapshot and never modify
    the current one. Snapshots round-trip through the Flask session with
    to_session()/from_session().
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple


SECTIONS = ("recipient", "package", "price")


# =============================================================================
# COERCION HELPERS
# =============================================================================

def _float(value: Any, default: float = 0.0) -> float:
    """Parse a number from JSON/form input, tolerating strings and None."""
    if value is None or value == "":
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(result) else result


def _int(value: Any, default: int = 0) -> int:
    return int(_float(value, default))


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(result) else result


def parse_id(value: Any) -> Optional[int]:
    """Integer record id, or None for blanks and non-numeric ids."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _str(value: Any) -> str:
    return "" if value is None else str(value)


# =============================================================================
# PACKAGES
# =============================================================================

@dataclass(frozen=True)
class PackageItem:
    """
    One product line declared for customs.

    Valid for pricing only with a name of at least 3 characters and an
    HS code of at least 6 characters.
    """

    name: str = ""
    description: str = ""
    hs_code: str = ""
    quantity: int = 1
    unit_price: float = 0.0
    """Declared unit price in major currency units."""
    weight: float = 0.0
    dimensions: str = ""
    country_of_origin: str = ""
    manufacturer: str = ""
    package_id: Optional[int] = None

    @property
    def is_valid_for_pricing(self) -> bool:
        return len(self.name.strip()) >= 3 and len(self.hs_code.strip()) >= 6

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "hsCode": self.hs_code,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "weight": self.weight,
            "dimensions": self.dimensions,
            "countryOfOrigin": self.country_of_origin,
            "manufacturer": self.manufacturer,
            "packageId": self.package_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageItem":
        # Missing quantity counts as one unit
        quantity = data.get("quantity")
        return cls(
            name=_str(data.get("name")),
            description=_str(data.get("description")),
            hs_code=_str(data.get("hsCode") or data.get("gtipCode")),
            quantity=_int(quantity, 1) if quantity not in (None, "") else 1,
            unit_price=_float(data.get("unitPrice")),
            weight=_float(data.get("weight")),
            dimensions=_str(data.get("dimensions")),
            country_of_origin=_str(data.get("countryOfOrigin")),
            manufacturer=_str(data.get("manufacturer")),
            package_id=parse_id(data.get("packageId")),
        )

    @classmethod
    def from_persisted(cls, data: Dict[str, Any]) -> "PackageItem":
        """Build from a stored shipment item whose ``price`` is in cents."""
        item = cls.from_dict(data)
        if data.get("price") not in (None, ""):
            item = replace(item, unit_price=_float(data.get("price")) / 100)
        return item


@dataclass(frozen=True)
class Package:
    """A physical parcel. Dimensions in cm, weight in kg."""

    length: float = 0.0
    width: float = 0.0
    height: float = 0.0
    weight: float = 0.0
    items: Tuple[PackageItem, ...] = ()
    id: Optional[int] = None
    name: str = ""

    @property
    def volume(self) -> float:
        return self.length * self.width * self.height

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "length": self.length,
            "width": self.width,
            "height": self.height,
            "weight": self.weight,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Package":
        return cls(
            length=_float(data.get("length")),
            width=_float(data.get("width")),
            height=_float(data.get("height")),
            weight=_float(data.get("weight")),
            items=tuple(PackageItem.from_dict(i) for i in data.get("items") or []),
            id=parse_id(data.get("id")),
            name=_str(data.get("name")),
        )


# =============================================================================
# PARTIES
# =============================================================================

@dataclass(frozen=True)
class Sender:
    """Shipper details (prefilled from the user profile)."""

    name: str = ""
    address1: str = ""
    address2: str = ""
    city: str = ""
    postal_code: str = ""
    phone: str = ""
    email: str = ""

    @property
    def address(self) -> str:
        return self.address1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "senderName": self.name,
            "senderAddress": self.address1,
            "senderAddress1": self.address1,
            "senderAddress2": self.address2,
            "senderCity": self.city,
            "senderPostalCode": self.postal_code,
            "senderPhone": self.phone,
            "senderEmail": self.email,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sender":
        return cls(
            name=_str(data.get("senderName")),
            # Older records only carry the single-line address
            address1=_str(data.get("senderAddress1") or data.get("senderAddress")),
            address2=_str(data.get("senderAddress2")),
            city=_str(data.get("senderCity")),
            postal_code=_str(data.get("senderPostalCode")),
            phone=_str(data.get("senderPhone")),
            email=_str(data.get("senderEmail")),
        )


RECEIVER_FIELDS = {
    "name": "receiverName",
    "email": "receiverEmail",
    "phone": "receiverPhone",
    "address": "receiverAddress",
    "suite": "receiverSuite",
    "state": "receiverState",
    "city": "receiverCity",
    "postal_code": "receiverPostalCode",
    "country": "receiverCountry",
}


@dataclass(frozen=True)
class Receiver:
    """Consignee details. ``country`` is an ISO-3166 alpha-2 code."""

    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    suite: str = ""
    state: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {wire: getattr(self, attr) for attr, wire in RECEIVER_FIELDS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Receiver":
        return cls(**{attr: _str(data.get(wire)) for attr, wire in RECEIVER_FIELDS.items()})


# =============================================================================
# PRICING
# =============================================================================

@dataclass(frozen=True)
class DutyInfo:
    """
    Duty estimate attached to a price quote.

    Two shapes arrive from the pricing service:
        detailed: baseDutyAmount + trumpTariffAmount (minor units)
        simple:   estimatedDuty (major units)
    """

    available: bool = False
    estimated_duty: Optional[float] = None
    base_duty_amount: Optional[float] = None
    tariff_amount: Optional[float] = None
    base_duty_rate: Optional[float] = None
    tariff_rate: Optional[float] = None
    hs_code: str = ""
    provider: str = ""
    confidence: Optional[float] = None
    source: str = ""
    message: str = ""

    @property
    def is_detailed(self) -> bool:
        return self.base_duty_amount is not None or self.tariff_amount is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": self.available,
            "estimatedDuty": self.estimated_duty,
            "baseDutyAmount": self.base_duty_amount,
            "trumpTariffAmount": self.tariff_amount,
            "baseDutyRate": self.base_duty_rate,
            "trumpTariffRate": self.tariff_rate,
            "hsCode": self.hs_code,
            "provider": self.provider,
            "confidence": self.confidence,
            "source": self.source,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["DutyInfo"]:
        if not data:
            return None
        return cls(
            available=bool(data.get("available")),
            estimated_duty=_optional_float(data.get("estimatedDuty")),
            base_duty_amount=_optional_float(data.get("baseDutyAmount")),
            tariff_amount=_optional_float(data.get("trumpTariffAmount")),
            base_duty_rate=_optional_float(data.get("baseDutyRate")),
            tariff_rate=_optional_float(data.get("trumpTariffRate")),
            hs_code=_str(data.get("hsCode")),
            provider=_str(data.get("provider")),
            confidence=_optional_float(data.get("confidence")),
            source=_str(data.get("source")),
            message=_str(data.get("message")),
        )


@dataclass(frozen=True)
class ServiceOption:
    """
    One selectable carrier service returned by the pricing service.

    Options are identified by ``key`` (display name + total price) because
    the list is re-fetched on every calculation.
    """

    display_name: str = ""
    total_price: int = 0
    base_price: int = 0
    fuel_charge: int = 0
    additional_fee: int = 0
    service_type: str = ""
    provider_service_code: str = ""
    service_code: str = ""
    applied_multiplier: Optional[float] = None
    original_base_price: Optional[int] = None
    original_fuel_charge: Optional[int] = None
    original_total_price: Optional[int] = None
    option_id: str = ""
    duties: Optional[DutyInfo] = None

    @property
    def key(self) -> Tuple[str, int]:
        return (self.display_name, self.total_price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.option_id,
            "displayName": self.display_name,
            "totalPrice": self.total_price,
            "cargoPrice": self.base_price,
            "fuelCost": self.fuel_charge,
            "additionalFee": self.additional_fee,
            "serviceType": self.service_type,
            "providerServiceCode": self.provider_service_code,
            "serviceCode": self.service_code,
            "appliedMultiplier": self.applied_multiplier,
            "originalCargoPrice": self.original_base_price,
            "originalFuelCost": self.original_fuel_charge,
            "originalTotalPrice": self.original_total_price,
            "duties": self.duties.to_dict() if self.duties else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceOption":
        def optional_int(*keys: str) -> Optional[int]:
            for key in keys:
                value = _optional_float(data.get(key))
                if value is not None:
                    return int(round(value))
            return None

        return cls(
            display_name=_str(data.get("displayName")),
            total_price=optional_int("totalPrice") or 0,
            base_price=optional_int("cargoPrice", "basePrice") or 0,
            fuel_charge=optional_int("fuelCost", "fuelCharge") or 0,
            additional_fee=optional_int("additionalFee") or 0,
            service_type=_str(data.get("serviceType")),
            provider_service_code=_str(data.get("providerServiceCode")),
            service_code=_str(data.get("serviceCode")),
            applied_multiplier=_optional_float(data.get("appliedMultiplier")),
            original_base_price=optional_int("originalCargoPrice", "originalBasePrice"),
            original_fuel_charge=optional_int("originalFuelCost", "originalFuelCharge"),
            original_total_price=optional_int("originalTotalPrice"),
            option_id=_str(data.get("id")),
            duties=DutyInfo.from_dict(data.get("duties")),
        )


@dataclass(frozen=True)
class PriceDetails:
    """Result of one price calculation; the first option's figures on top."""

    base_price: int = 0
    fuel_charge: int = 0
    total_price: int = 0
    service_level: str = ""
    carrier_name: str = ""
    applied_multiplier: Optional[float] = None
    original_base_price: Optional[int] = None
    original_fuel_charge: Optional[int] = None
    original_total_price: Optional[int] = None
    duties: Optional[DutyInfo] = None
    options: Tuple[ServiceOption, ...] = ()

    def find_option(self, display_name: str, total_price: int) -> Optional[ServiceOption]:
        for option in self.options:
            if option.key == (display_name, total_price):
                return option
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "basePrice": self.base_price,
            "fuelCharge": self.fuel_charge,
            "totalPrice": self.total_price,
            "serviceLevel": self.service_level,
            "carrierName": self.carrier_name,
            "appliedMultiplier": self.applied_multiplier,
            "originalBasePrice": self.original_base_price,
            "originalFuelCharge": self.original_fuel_charge,
            "originalTotalPrice": self.original_total_price,
            "duties": self.duties.to_dict() if self.duties else None,
            "options": [o.to_dict() for o in self.options],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["PriceDetails"]:
        if not data:
            return None
        return cls(
            base_price=_int(data.get("basePrice")),
            fuel_charge=_int(data.get("fuelCharge")),
            total_price=_int(data.get("totalPrice")),
            service_level=_str(data.get("serviceLevel")),
            carrier_name=_str(data.get("carrierName")),
            applied_multiplier=_optional_float(data.get("appliedMultiplier")),
            original_base_price=_optional_int(data.get("originalBasePrice")),
            original_fuel_charge=_optional_int(data.get("originalFuelCharge")),
            original_total_price=_optional_int(data.get("originalTotalPrice")),
            duties=DutyInfo.from_dict(data.get("duties")),
            options=tuple(ServiceOption.from_dict(o) for o in data.get("options") or []),
        )


def _optional_int(value: Any) -> Optional[int]:
    result = _optional_float(value)
    return None if result is None else int(round(result))


@dataclass(frozen=True)
class CreditLimitInfo:
    """
    Outcome of the admission check for one prospective price.

    Amounts are minor units; the formatted_* fields are display strings.
    Never persisted.
    """

    user_balance: int
    min_balance: int
    new_balance: int
    has_warning: bool
    exceeded_amount: int
    available_credit: int
    formatted_user_balance: str = ""
    formatted_min_balance: str = ""
    formatted_new_balance: str = ""
    formatted_exceeded_amount: str = ""
    formatted_available_credit: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userBalance": self.user_balance,
            "minBalance": self.min_balance,
            "newBalance": self.new_balance,
            "hasWarning": self.has_warning,
            "exceededAmount": self.exceeded_amount,
            "availableCredit": self.available_credit,
            "formattedUserBalance": self.formatted_user_balance,
            "formattedMinBalance": self.formatted_min_balance,
            "formattedNewBalance": self.formatted_new_balance,
            "formattedExceededAmount": self.formatted_exceeded_amount,
            "formattedAvailableCredit": self.formatted_available_credit,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["CreditLimitInfo"]:
        if not data:
            return None
        return cls(
            user_balance=_int(data.get("userBalance")),
            min_balance=_int(data.get("minBalance")),
            new_balance=_int(data.get("newBalance")),
            has_warning=bool(data.get("hasWarning")),
            exceeded_amount=_int(data.get("exceededAmount")),
            available_credit=_int(data.get("availableCredit")),
            formatted_user_balance=_str(data.get("formattedUserBalance")),
            formatted_min_balance=_str(data.get("formattedMinBalance")),
            formatted_new_balance=_str(data.get("formattedNewBalance")),
            formatted_exceeded_amount=_str(data.get("formattedExceededAmount")),
            formatted_available_credit=_str(data.get("formattedAvailableCredit")),
        )


# =============================================================================
# PACKAGE FORM
# =============================================================================

@dataclass(frozen=True)
class PackageForm:
    """
    Package-section form fields.

    length/width/height/weight are the values quoted to the pricing service.
    With several packages they hold the derived cube edge and summed weight.
    """

    length: float = 0.0
    width: float = 0.0
    height: float = 0.0
    weight: float = 0.0
    piece_count: int = 1
    item_count: int = 1
    customs_value: int = 0
    """Declared value in minor units; also the insured value."""
    currency: str = "USD"
    hs_code: str = ""
    service_level: str = "standard"
    shipping_terms: str = "ddp"
    include_insurance: bool = False

    @property
    def geometry(self) -> Tuple[float, float, float, float]:
        return (self.length, self.width, self.height, self.weight)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "packageLength": self.length,
            "packageWidth": self.width,
            "packageHeight": self.height,
            "packageWeight": self.weight,
            "pieceCount": self.piece_count,
            "itemCount": self.item_count,
            "customsValue": self.customs_value,
            "currency": self.currency,
            "gtipCode": self.hs_code,
            "serviceLevel": self.service_level,
            "shippingTerms": self.shipping_terms,
            "includeInsurance": self.include_insurance,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageForm":
        terms = _str(data.get("shippingTerms")).lower() or "ddp"
        return cls(
            length=_float(data.get("packageLength")),
            width=_float(data.get("packageWidth")),
            height=_float(data.get("packageHeight")),
            weight=_float(data.get("packageWeight")),
            piece_count=_int(data.get("pieceCount"), 1),
            item_count=_int(data.get("itemCount"), 1),
            customs_value=_int(data.get("customsValue")),
            currency=_str(data.get("currency")) or "USD",
            hs_code=_str(data.get("gtipCode")),
            service_level=_str(data.get("serviceLevel")) or "standard",
            shipping_terms=terms,
            include_insurance=bool(data.get("includeInsurance") or data.get("isInsured")),
        )


# =============================================================================
# AGGREGATE ROOT
# =============================================================================

@dataclass(frozen=True)
class ShipmentDraft:
    """
    The whole in-progress shipment.

    Lifecycle:
        1. Created empty (recipient expanded) or loaded from a draft id
        2. Updated by the wizard through the mutation methods below
        3. Persisted as a draft at any point (draft_id retained)
        4. Submitted; the snapshot is then discarded
    """

    sender: Sender = field(default_factory=Sender)
    receiver: Receiver = field(default_factory=Receiver)
    package_contents: str = ""
    package_form: PackageForm = field(default_factory=PackageForm)
    packages: Tuple[Package, ...] = ()
    items: Tuple[PackageItem, ...] = ()
    draft_id: Optional[int] = None
    billable_weight: Optional[float] = None
    price_details: Optional[PriceDetails] = None
    selected_option: Optional[ServiceOption] = None
    credit_info: Optional[CreditLimitInfo] = None
    expanded: FrozenSet[str] = frozenset({"recipient"})
    field_errors: Tuple[Tuple[str, str], ...] = ()

    # ---------------------------------------------------------------------
    # Mutations (each returns the next snapshot)
    # ---------------------------------------------------------------------

    def set_receiver(self, **changes: Any) -> "ShipmentDraft":
        return replace(self, receiver=replace(self.receiver, **changes))

    def set_sender(self, **changes: Any) -> "ShipmentDraft":
        return replace(self, sender=replace(self.sender, **changes))

    def set_package_contents(self, contents: str) -> "ShipmentDraft":
        return replace(self, package_contents=contents)

    def set_package(self, **changes: Any) -> "ShipmentDraft":
        """Update package form fields (dimensions, customs, service)."""
        if "shipping_terms" in changes:
            changes["shipping_terms"] = _str(changes["shipping_terms"]).lower()
        return replace(self, package_form=replace(self.package_form, **changes))

    def set_packages(self, packages: Iterable[Package]) -> "ShipmentDraft":
        return replace(self, packages=tuple(packages))

    def set_items(self, items: Iterable[PackageItem]) -> "ShipmentDraft":
        return replace(self, items=tuple(items))

    def with_billable_weight(self, weight: Optional[float]) -> "ShipmentDraft":
        return replace(self, billable_weight=weight)

    def with_price(
        self,
        price_details: Optional[PriceDetails],
        selected_option: Optional[ServiceOption] = None,
    ) -> "ShipmentDraft":
        """Replace the price; credit info always goes with the old price."""
        return replace(
            self,
            price_details=price_details,
            selected_option=selected_option,
            credit_info=None,
        )

    def clear_price(self) -> "ShipmentDraft":
        return replace(
            self,
            price_details=None,
            selected_option=None,
            credit_info=None,
            billable_weight=None,
        )

    def select_service_option(self, display_name: str, total_price: int) -> "ShipmentDraft":
        """
        Select an option from the current quote by value.

        Raises:
            ValueError: If there is no price or no option matches
        """
        if self.price_details is None:
            raise ValueError("No price has been calculated")
        option = self.price_details.find_option(display_name, total_price)
        if option is None:
            raise ValueError(f"Service option '{display_name}' is no longer available")
        return replace(self, selected_option=option, credit_info=None)

    def with_credit(self, credit_info: Optional[CreditLimitInfo]) -> "ShipmentDraft":
        return replace(self, credit_info=credit_info)

    def with_draft_id(self, draft_id: Optional[int]) -> "ShipmentDraft":
        return replace(self, draft_id=draft_id)

    def expand(self, *sections: str) -> "ShipmentDraft":
        return replace(self, expanded=self.expanded | frozenset(sections))

    def collapse(self, *sections: str) -> "ShipmentDraft":
        return replace(self, expanded=self.expanded - frozenset(sections))

    def with_field_error(self, field_name: str, message: str) -> "ShipmentDraft":
        errors = dict(self.field_errors)
        errors[field_name] = message
        return replace(self, field_errors=tuple(sorted(errors.items())))

    def clear_field_error(self, field_name: str) -> "ShipmentDraft":
        errors = tuple((k, v) for k, v in self.field_errors if k != field_name)
        return replace(self, field_errors=errors)

    @property
    def errors(self) -> Dict[str, str]:
        return dict(self.field_errors)

    @property
    def all_items(self) -> Tuple[PackageItem, ...]:
        """Declared items, falling back to the items carried by packages."""
        if self.items:
            return self.items
        return tuple(item for package in self.packages for item in package.items)

    # ---------------------------------------------------------------------
    # Session storage
    # ---------------------------------------------------------------------

    def to_session(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict for session storage."""
        return {
            "sender": self.sender.to_dict(),
            "receiver": self.receiver.to_dict(),
            "packageContents": self.package_contents,
            "packageForm": self.package_form.to_dict(),
            "packages": [p.to_dict() for p in self.packages],
            "items": [i.to_dict() for i in self.items],
            "draftId": self.draft_id,
            "billableWeight": self.billable_weight,
            "priceDetails": self.price_details.to_dict() if self.price_details else None,
            "selectedOption": self.selected_option.to_dict() if self.selected_option else None,
            "creditInfo": self.credit_info.to_dict() if self.credit_info else None,
            "expanded": sorted(self.expanded, key=SECTIONS.index),
            "fieldErrors": dict(self.field_errors),
        }

    @classmethod
    def from_session(cls, data: Optional[Dict[str, Any]]) -> "ShipmentDraft":
        """Create from a session dict (empty draft for None)."""
        if not data:
            return cls()
        selected = data.get("selectedOption")
        draft_id = data.get("draftId")
        return cls(
            sender=Sender.from_dict(data.get("sender") or {}),
            receiver=Receiver.from_dict(data.get("receiver") or {}),
            package_contents=_str(data.get("packageContents")),
            package_form=PackageForm.from_dict(data.get("packageForm") or {}),
            packages=tuple(Package.from_dict(p) for p in data.get("packages") or []),
            items=tuple(PackageItem.from_dict(i) for i in data.get("items") or []),
            draft_id=int(draft_id) if draft_id is not None else None,
            billable_weight=_optional_float(data.get("billableWeight")),
            price_details=PriceDetails.from_dict(data.get("priceDetails")),
            selected_option=ServiceOption.from_dict(selected) if selected else None,
            credit_info=CreditLimitInfo.from_dict(data.get("creditInfo")),
            expanded=frozenset(s for s in data.get("expanded", ["recipient"]) if s in SECTIONS),
            field_errors=tuple(sorted((data.get("fieldErrors") or {}).items())),
        )
