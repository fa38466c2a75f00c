"""
Tests for the debounced address/postal validation coordinator.

Most tests run with a zero debounce and wait_for_pending(); the coalescing
and stale-outcome tests use events to control timer ordering.
"""

import threading

import pytest

from core.exceptions import AddressValidationError
from models.shipment import Receiver, ShipmentDraft
from models.validation_result import ValidationKind, ValidationOutcome
from services.validation_coordinator import (
    AddressValidationCoordinator,
    ValidationOutcomeStore,
    strip_zip_extension,
)


SESSION = "a" * 32

VALID_POSTAL = {"isValid": True, "city": "NEW YORK", "stateOrProvinceCode": "NY"}


@pytest.fixture
def coordinator(mock_client):
    coordinator = AddressValidationCoordinator(mock_client, postal_debounce=0.0, address_debounce=0.0)
    yield coordinator
    coordinator.shutdown()


@pytest.fixture
def us_receiver():
    return Receiver(
        name="Jane Doe",
        address="1 main st",
        city="new york",
        state="NY",
        postal_code="10001",
        country="US",
    )


class TestScheduling:

    def test_postal_change_validates_postal_only(self, coordinator, mock_client, us_receiver):
        mock_client.validate_postal_code.return_value = VALID_POSTAL

        kinds = coordinator.schedule(SESSION, us_receiver, {"postal_code"})
        coordinator.wait_for_pending()

        assert kinds == [ValidationKind.POSTAL_CODE]
        payload = mock_client.validate_postal_code.call_args[0][0]
        assert payload == {
            "postalCode": "10001",
            "countryCode": "US",
            "stateOrProvinceCode": "NY",
            "carrierCode": "FDXE",
        }
        mock_client.validate_address.assert_not_called()

        outcomes = coordinator.collect(SESSION)
        assert len(outcomes) == 1
        assert outcomes[0].is_valid
        assert outcomes[0].city == "NEW YORK"

    def test_country_change_validates_both(self, coordinator, mock_client, us_receiver):
        mock_client.validate_postal_code.return_value = VALID_POSTAL
        mock_client.validate_address.return_value = {"isValid": True}

        kinds = coordinator.schedule(SESSION, us_receiver, {"country"})
        coordinator.wait_for_pending()

        assert set(kinds) == {ValidationKind.POSTAL_CODE, ValidationKind.ADDRESS}
        assert [o.kind for o in coordinator.collect(SESSION)] == [
            ValidationKind.POSTAL_CODE,
            ValidationKind.ADDRESS,
        ]

    def test_unwatched_fields_schedule_nothing(self, coordinator, mock_client, us_receiver):
        assert coordinator.schedule(SESSION, us_receiver, {"name", "phone"}) == []
        assert not coordinator.is_pending(SESSION)

    def test_incomplete_values_are_not_validated(self, coordinator, us_receiver):
        receiver = Receiver(postal_code="", country="US", address="1 Main St", city="")
        assert coordinator.schedule(SESSION, receiver, {"postal_code", "address"}) == []

    def test_memo_skips_already_validated_value(self, coordinator, mock_client, us_receiver):
        mock_client.validate_postal_code.return_value = VALID_POSTAL

        coordinator.schedule(SESSION, us_receiver, {"postal_code"})
        coordinator.wait_for_pending()
        coordinator.collect(SESSION)

        assert coordinator.schedule(SESSION, us_receiver, {"postal_code"}) == []
        assert mock_client.validate_postal_code.call_count == 1

    def test_memo_is_per_session(self, coordinator, mock_client, us_receiver):
        mock_client.validate_postal_code.return_value = VALID_POSTAL

        coordinator.schedule(SESSION, us_receiver, {"postal_code"})
        coordinator.wait_for_pending()

        assert coordinator.schedule("b" * 32, us_receiver, {"postal_code"}) == [ValidationKind.POSTAL_CODE]
        coordinator.wait_for_pending()
        assert mock_client.validate_postal_code.call_count == 2

    def test_rapid_changes_coalesce(self, mock_client, us_receiver):
        mock_client.validate_postal_code.return_value = VALID_POSTAL
        coordinator = AddressValidationCoordinator(mock_client, postal_debounce=0.2)
        try:
            for postal_code in ("1", "10", "100", "1000", "10001"):
                coordinator.schedule(SESSION, Receiver(postal_code=postal_code, country="US"), {"postal_code"})
            assert coordinator.is_pending(SESSION)
            coordinator.wait_for_pending()
        finally:
            coordinator.shutdown()

        mock_client.validate_postal_code.assert_called_once()
        assert mock_client.validate_postal_code.call_args[0][0]["postalCode"] == "10001"

    def test_schedule_after_shutdown(self, coordinator, us_receiver):
        coordinator.shutdown()
        assert coordinator.schedule(SESSION, us_receiver, {"postal_code"}) == []


class TestStaleOutcomes:

    def test_slow_older_response_is_dropped(self, coordinator, mock_client, us_receiver):
        entered = threading.Event()
        release = threading.Event()
        calls = []

        def validate(payload):
            calls.append(payload["postalCode"])
            if len(calls) == 1:
                entered.set()
                release.wait(timeout=5)
                return {"isValid": True, "city": "OLD CITY"}
            return {"isValid": True, "city": "NEW CITY"}

        mock_client.validate_postal_code.side_effect = validate

        coordinator.schedule(SESSION, us_receiver, {"postal_code"})
        assert entered.wait(timeout=5)
        first_timer = coordinator._timers[(SESSION, ValidationKind.POSTAL_CODE)]

        newer = Receiver(postal_code="10002", country="US", state="NY")
        coordinator.schedule(SESSION, newer, {"postal_code"})
        coordinator.wait_for_pending()

        release.set()
        first_timer.join(timeout=5)

        outcomes = coordinator.collect(SESSION)
        assert calls == ["10001", "10002"]
        assert len(outcomes) == 1
        assert outcomes[0].city == "NEW CITY"
        assert outcomes[0].generation == 2

    def test_forget_cancels_pending(self, mock_client, us_receiver):
        coordinator = AddressValidationCoordinator(mock_client, postal_debounce=10.0)
        try:
            coordinator.schedule(SESSION, us_receiver, {"postal_code"})
            assert coordinator.is_pending(SESSION)
            coordinator.forget(SESSION)
            assert not coordinator.is_pending(SESSION)
        finally:
            coordinator.shutdown()
        mock_client.validate_postal_code.assert_not_called()


class TestOutcomes:

    def test_address_normalization_strips_zip_extension(self, coordinator, mock_client, us_receiver):
        mock_client.validate_address.return_value = {
            "isValid": True,
            "deliverability": "DELIVERABLE",
            "standardizedAddress": {
                "streetLines": ["1 MAIN ST", "APT 2"],
                "city": "NEW YORK",
                "stateOrProvinceCode": "NY",
                "postalCode": "10001-1234",
                "countryCode": "US",
            },
        }

        coordinator.schedule(SESSION, us_receiver, {"address"})
        coordinator.wait_for_pending()
        outcome = coordinator.collect(SESSION)[0]

        assert outcome.address == "1 MAIN ST, APT 2"
        assert outcome.postal_code == "10001"
        assert outcome.validated_value == "1 MAIN ST, APT 2|NEW YORK|US"

        draft, notification = coordinator.apply_outcome(ShipmentDraft(receiver=us_receiver), outcome)
        assert draft.receiver.address == "1 MAIN ST, APT 2"
        assert draft.receiver.city == "NEW YORK"
        assert notification["message"] == "Address is valid and deliverable"

        # The normalized value is already validated
        assert coordinator.schedule(SESSION, draft.receiver, {"address"}) == []

    def test_invalid_postal_code(self, coordinator, mock_client, us_receiver):
        mock_client.validate_postal_code.return_value = {"isValid": False, "errors": ["Unknown ZIP"]}

        coordinator.schedule(SESSION, us_receiver, {"postal_code"})
        coordinator.wait_for_pending()
        outcome = coordinator.collect(SESSION)[0]

        draft, notification = coordinator.apply_outcome(ShipmentDraft(receiver=us_receiver), outcome)
        assert draft.errors == {"receiverPostalCode": "Unknown ZIP"}
        assert notification["level"] == "error"
        assert notification["title"] == "Postal Code Validation"

    def test_unreachable_service_notifies_without_field_error(self, coordinator, mock_client, us_receiver):
        mock_client.validate_postal_code.side_effect = AddressValidationError(
            "Could not reach the server", operation="validate postal code"
        )

        coordinator.schedule(SESSION, us_receiver, {"postal_code"})
        coordinator.wait_for_pending()
        outcome = coordinator.collect(SESSION)[0]
        assert outcome.unavailable

        draft, notification = coordinator.apply_outcome(ShipmentDraft(receiver=us_receiver), outcome)
        assert draft.errors == {}
        assert notification["title"] == "Validation Error"

        # Not memoized, so the same value is tried again
        assert coordinator.schedule(SESSION, us_receiver, {"postal_code"}) == [ValidationKind.POSTAL_CODE]

    def test_malformed_response_is_unavailable(self, coordinator, mock_client, us_receiver):
        mock_client.validate_postal_code.return_value = ["not", "an", "object"]

        coordinator.schedule(SESSION, us_receiver, {"postal_code"})
        coordinator.wait_for_pending()
        outcomes = coordinator.collect(SESSION)

        assert len(outcomes) == 1
        assert outcomes[0].unavailable
        assert outcomes[0].error == "Unexpected response from the validation service"
        assert coordinator.schedule(SESSION, us_receiver, {"postal_code"}) == [ValidationKind.POSTAL_CODE]

    def test_valid_postal_code_clears_error_and_backfills(self):
        draft = ShipmentDraft(receiver=Receiver(postal_code="10001", country="US"))
        draft = draft.with_field_error("receiverPostalCode", "Unknown ZIP")
        outcome = ValidationOutcome(
            kind=ValidationKind.POSTAL_CODE,
            generation=1,
            is_valid=True,
            city="NEW YORK",
            state="NY",
        )

        updated, notification = AddressValidationCoordinator.apply_outcome(draft, outcome)
        assert updated.receiver.city == "NEW YORK"
        assert updated.receiver.state == "NY"
        assert updated.errors == {}
        assert notification["message"] == "Valid postal code for NEW YORK, NY"

    def test_strip_zip_extension(self):
        assert strip_zip_extension("10001-1234", "US") == "10001"
        assert strip_zip_extension("10001", "US") == "10001"
        assert strip_zip_extension("1234-567", "PT") == "1234-567"


class TestOutcomeStore:

    def test_collect_is_consume_once(self):
        store = ValidationOutcomeStore()
        store.put(SESSION, ValidationOutcome(ValidationKind.ADDRESS, 1, True))
        assert len(store.collect(SESSION)) == 1
        assert store.collect(SESSION) == []

    def test_latest_outcome_per_kind(self):
        store = ValidationOutcomeStore()
        store.put(SESSION, ValidationOutcome(ValidationKind.POSTAL_CODE, 1, False))
        store.put(SESSION, ValidationOutcome(ValidationKind.POSTAL_CODE, 2, True))
        assert [o.generation for o in store.collect(SESSION)] == [2]

    def test_clear(self):
        store = ValidationOutcomeStore()
        store.put(SESSION, ValidationOutcome(ValidationKind.ADDRESS, 1, True))
        store.put("other", ValidationOutcome(ValidationKind.ADDRESS, 1, True))
        assert store.clear() == 2


class TestBookkeeping:

    def test_published_task_leaves_no_record(self, coordinator, mock_client, us_receiver):
        mock_client.validate_postal_code.return_value = VALID_POSTAL

        coordinator.schedule(SESSION, us_receiver, {"postal_code", "address"})
        coordinator.wait_for_pending()

        assert coordinator._generations == {}
        assert coordinator._timers == {}
        assert len(coordinator.collect(SESSION)) == 2

    def test_idle_sessions_are_pruned(self, mock_client, us_receiver):
        mock_client.validate_postal_code.return_value = VALID_POSTAL
        now = [0.0]
        coordinator = AddressValidationCoordinator(
            mock_client, postal_debounce=0.0, session_ttl=60.0, clock=lambda: now[0]
        )
        other = "b" * 32
        try:
            coordinator.schedule(SESSION, us_receiver, {"postal_code"})
            coordinator.wait_for_pending()
            assert (SESSION, ValidationKind.POSTAL_CODE) in coordinator._memo

            now[0] = 120.0
            coordinator.schedule(other, us_receiver, {"postal_code"})
            coordinator.wait_for_pending()

            assert all(key[0] == other for key in coordinator._memo)
            assert list(coordinator._touched) == [other]
            assert coordinator.collect(SESSION) == []

            # The memo is gone, so the same value is validated again
            assert coordinator.schedule(SESSION, us_receiver, {"postal_code"}) == [ValidationKind.POSTAL_CODE]
        finally:
            coordinator.shutdown()

    def test_active_sessions_are_kept(self, mock_client, us_receiver):
        mock_client.validate_postal_code.return_value = VALID_POSTAL
        now = [0.0]
        coordinator = AddressValidationCoordinator(
            mock_client, postal_debounce=0.0, session_ttl=60.0, clock=lambda: now[0]
        )
        try:
            coordinator.schedule(SESSION, us_receiver, {"postal_code"})
            coordinator.wait_for_pending()

            now[0] = 30.0
            coordinator.schedule("b" * 32, us_receiver, {"postal_code"})
            coordinator.wait_for_pending()

            assert coordinator.schedule(SESSION, us_receiver, {"postal_code"}) == []
        finally:
            coordinator.shutdown()

    def test_forget_drops_every_record(self, mock_client, us_receiver):
        coordinator = AddressValidationCoordinator(mock_client, postal_debounce=10.0)
        try:
            coordinator.schedule(SESSION, us_receiver, {"postal_code"})
            coordinator.forget(SESSION)

            assert coordinator._generations == {}
            assert coordinator._touched == {}
            assert coordinator._memo == {}
        finally:
            coordinator.shutdown()
