"""Unit tests for section completion and the step transitions."""

import pytest
from dataclasses import replace

from models.shipment import Package, PackageItem, ShipmentDraft
from modules.sections import (
    all_sections_complete,
    check_ready_for_pricing,
    continue_from_recipient,
    is_package_complete,
    is_price_complete,
    is_recipient_complete,
    section_status,
    toggle_section,
)


RECIPIENT_FIELDS = [
    ("receiver", "name"),
    ("receiver", "phone"),
    ("receiver", "address"),
    ("receiver", "city"),
    ("receiver", "postal_code"),
    ("receiver", "country"),
    ("sender", "name"),
    ("sender", "address1"),
]


class TestRecipientCompletion:

    def test_complete_when_all_fields_set(self, recipient_draft):
        assert is_recipient_complete(recipient_draft)

    @pytest.mark.parametrize("part,attr", RECIPIENT_FIELDS)
    def test_any_blank_field_makes_it_incomplete(self, recipient_draft, part, attr):
        blanked = replace(recipient_draft, **{part: replace(getattr(recipient_draft, part), **{attr: ""})})
        assert not is_recipient_complete(blanked)

        # And filling it back in restores completion
        restored = replace(blanked, **{part: getattr(recipient_draft, part)})
        assert is_recipient_complete(restored)

    def test_package_contents_required(self, recipient_draft):
        assert not is_recipient_complete(recipient_draft.set_package_contents(""))


class TestOtherSections:

    def test_package_complete(self, package_draft):
        assert is_package_complete(package_draft)
        assert not is_package_complete(package_draft.set_package(weight=0))

    def test_price_complete_only_with_price(self, package_draft, priced_draft):
        assert not is_price_complete(package_draft)
        assert is_price_complete(priced_draft)
        assert all_sections_complete(priced_draft)

    def test_section_status(self, package_draft):
        status = section_status(package_draft)
        assert status["recipient"] == {"expanded": True, "complete": True}
        assert status["price"]["complete"] is False

    def test_toggle(self):
        draft = toggle_section(ShipmentDraft(), "package")
        assert "package" in draft.expanded
        assert "package" not in toggle_section(draft, "package").expanded

    def test_toggle_unknown_section(self):
        with pytest.raises(ValueError):
            toggle_section(ShipmentDraft(), "customs")


class TestContinueFromRecipient:

    def test_moves_to_package(self, recipient_draft):
        transition = continue_from_recipient(recipient_draft)
        assert transition.ok
        assert "package" in transition.draft.expanded
        assert "recipient" not in transition.draft.expanded

    def test_blocks_on_missing_fields(self, recipient_draft):
        draft = recipient_draft.set_receiver(city="", postal_code="")
        transition = continue_from_recipient(draft)
        assert not transition.ok
        assert set(transition.draft.errors) == {"receiverCity", "receiverPostalCode"}
        assert transition.draft.expanded == draft.expanded

    def test_state_required_for_us(self, recipient_draft):
        transition = continue_from_recipient(recipient_draft.set_receiver(state=""))
        assert "receiverState" in transition.draft.errors

    def test_errors_cleared_once_fixed(self, recipient_draft):
        failed = continue_from_recipient(recipient_draft.set_receiver(city="")).draft
        fixed = continue_from_recipient(failed.set_receiver(city="New York"))
        assert fixed.ok
        assert fixed.draft.errors == {}


class TestReadyForPricing:

    def test_ready(self, package_draft):
        assert check_ready_for_pricing(package_draft).ok

    def test_form_errors_first(self, package_draft):
        transition = check_ready_for_pricing(package_draft.set_package(length=0, weight=0.05))
        assert {e.field for e in transition.errors} == {"packageLength", "packageWeight"}

    def test_contents_required(self, package_draft):
        transition = check_ready_for_pricing(package_draft.set_package_contents(""))
        assert transition.errors[0].field == "packageContents"

    def test_products_required(self, package_draft):
        transition = check_ready_for_pricing(package_draft.set_items([]))
        assert transition.errors[0].title == "Products Required"

    def test_short_product_name(self, package_draft):
        transition = check_ready_for_pricing(package_draft.set_items([PackageItem(name="TV", hs_code="852872")]))
        assert "product name too short" in transition.errors[0].message

    def test_hs_code_required(self, package_draft):
        transition = check_ready_for_pricing(package_draft.set_items([PackageItem(name="Television", hs_code="85")]))
        assert "HTS code required" in transition.errors[0].message

    def test_packages_required(self, package_draft):
        transition = check_ready_for_pricing(package_draft.set_packages([]))
        assert transition.errors[0].title == "Missing packages"

    def test_items_carried_by_packages_count(self, package_draft, item):
        draft = package_draft.set_items([]).set_packages(
            [Package(length=30, width=20, height=10, weight=2.0, items=(item,))]
        )
        assert check_ready_for_pricing(draft).ok
