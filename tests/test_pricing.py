"""
Unit tests for the cost breakdown and duty rules.

Amounts are minor units throughout.
"""

import pytest

from models.shipment import DutyInfo, ServiceOption
from modules.pricing import (
    compute_cost_breakdown,
    ddp_processing_fee,
    derive_provider,
    duty_provenance,
    extract_duty_amount,
    insurance_cost,
    is_us_destination,
    split_ddp_duties,
)


def option_with(duties, name="Express", total=1000, **kwargs):
    return ServiceOption(display_name=name, total_price=total, duties=duties, **kwargs)


DETAILED_300 = DutyInfo(available=True, base_duty_amount=200, tariff_amount=100)
ZERO_DUTY = DutyInfo(available=True, estimated_duty=0)


class TestTotals:
    """Total cost by incoterm."""

    def test_dap_never_includes_duty(self):
        breakdown = compute_cost_breakdown(option_with(DETAILED_300), False, 0, "US", "dap")
        assert breakdown.duty_amount == 300
        assert breakdown.total_cost == 1000
        assert breakdown.duties_informational is True

    def test_ddp_us_includes_duty_and_processing_fee(self):
        breakdown = compute_cost_breakdown(option_with(DETAILED_300), False, 0, "US", "ddp")
        assert breakdown.processing_fee == 450
        assert breakdown.total_cost == 1000 + 0 + (300 + 450)

    def test_ddp_us_zero_duty_still_adds_fee(self):
        breakdown = compute_cost_breakdown(option_with(ZERO_DUTY), False, 0, "US", "ddp")
        assert breakdown.total_cost == 1000 + 450

    def test_ddp_us_zero_duty_eco_fee(self):
        breakdown = compute_cost_breakdown(option_with(ZERO_DUTY, name="ECO Saver"), False, 0, "US", "ddp")
        assert breakdown.total_cost == 1000 + 45

    def test_ddp_outside_us_has_no_fee(self):
        breakdown = compute_cost_breakdown(option_with(DETAILED_300), False, 0, "DE", "ddp")
        assert breakdown.processing_fee == 0
        assert breakdown.total_cost == 1000

    def test_insurance_added_to_total(self):
        breakdown = compute_cost_breakdown(option_with(DETAILED_300), True, 25000, "US", "dap")
        assert breakdown.insurance_cost == 250
        assert breakdown.total_cost == 1250

    def test_zero_duty_shown_as_free(self):
        breakdown = compute_cost_breakdown(option_with(ZERO_DUTY), False, 0, "US", "ddp")
        duty_line = next(line for line in breakdown.lines if line.kind == "duty_total")
        assert duty_line.display == "Free"

    def test_no_option_gives_empty_breakdown(self):
        assert compute_cost_breakdown(None, False, 0, "US", "ddp").total_cost == 0


class TestBuildingBlocks:

    def test_insurance_is_one_percent_rounded(self):
        assert insurance_cost(True, 25000) == 250
        assert insurance_cost(True, 12345) == 123
        assert insurance_cost(False, 25000) == 0

    def test_simple_duty_shape_is_major_units(self):
        assert extract_duty_amount(DutyInfo(available=True, estimated_duty=12.34)) == 1234

    def test_unavailable_duty_is_zero(self):
        assert extract_duty_amount(DutyInfo(available=False, base_duty_amount=500)) == 0
        assert extract_duty_amount(None) == 0

    def test_processing_fee_only_for_us_ddp(self):
        option = option_with(None)
        assert ddp_processing_fee(option, "US", "ddp") == 450
        assert ddp_processing_fee(option, "US", "dap") == 0
        assert ddp_processing_fee(option, "GB", "ddp") == 0

    def test_us_destination_names(self):
        assert is_us_destination("US")
        assert is_us_destination("usa")
        assert is_us_destination("United States")
        assert not is_us_destination("GB")

    def test_provenance(self):
        assert duty_provenance(DutyInfo(available=True, provider="USITC", source="official")) == (
            "Official USITC rates (verified)"
        )
        assert duty_provenance(DutyInfo(available=True, provider="OpenAI", confidence=0.85)) == (
            "AI calculated (85% confidence)"
        )
        assert duty_provenance(DutyInfo(available=True)) == "Estimated duties"
        assert duty_provenance(None) is None


class TestSubmissionHelpers:

    def test_detailed_duties_passed_through(self):
        split = split_ddp_duties(option_with(DETAILED_300), 25000, "US", "ddp")
        assert (split.base_duty, split.tariff, split.total, split.processing_fee) == (200, 100, 300, 450)

    def test_simple_duties_split_from_customs_value(self):
        option = option_with(DutyInfo(available=True, estimated_duty=58.25))
        split = split_ddp_duties(option, 25000, "United States", "ddp")
        assert split.base_duty == 2500
        assert split.tariff == 3325
        assert split.total == 5825

    def test_payload_keys(self):
        payload = split_ddp_duties(option_with(DETAILED_300, name="Eco"), 0, "US", "ddp").to_payload()
        assert payload == {
            "ddpBaseDutiesAmount": 200,
            "ddpTrumpTariffsAmount": 100,
            "ddpDutiesAmount": 300,
            "ddpProcessingFee": 45,
        }

    @pytest.mark.parametrize("country,terms", [("US", "dap"), ("DE", "ddp")])
    def test_no_split_outside_us_ddp(self, country, terms):
        assert split_ddp_duties(option_with(DETAILED_300), 25000, country, terms) is None

    def test_provider_derivation(self):
        assert derive_provider(option_with(None, provider_service_code="afs-7")) == ("afs", "AFS Transport")
        assert derive_provider(option_with(None, service_code="ARAMEX_PPX")) == ("aramex", "Aramex")
        assert derive_provider(option_with(None), "UPS") == ("platform", "UPS")
        assert derive_provider(None) == ("platform", "Standard Carrier")
