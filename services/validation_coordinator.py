"""
Debounced receiver address and postal code validation.

Each (session, kind) pair owns at most one pending threading.Timer. Every
schedule cancels the pending timer and takes the next generation from a
coordinator-wide sequence; a timer thread only publishes its outcome if its
generation is still the one recorded for its key, so a slow response can
never overwrite a newer one. The record is removed once the outcome is
published, and sessions idle for longer than ``session_ttl`` lose their
memos on the next schedule.

Thread Safety:
    - Timer threads WRITE outcomes to ValidationOutcomeStore
    - Request threads READ (and remove) outcomes with collect()
    - Generations, timers and memos are guarded by one lock

Watchers:
    postal   receiver postal code, country or state changed (1.0 s)
    address  receiver address, city or country changed (1.5 s)

Normalized values written back by apply_outcome() are not field edits, so
they never schedule another validation. The last-validated memo skips
values that were already checked.

Usage:
    coordinator = AddressValidationCoordinator(client)

    # Request thread, after the user edited receiver fields
    coordinator.schedule(session_key, draft.receiver, {"postal_code"})

    # Request thread, when polling
    for outcome in coordinator.collect(session_key):
        draft, notification = coordinator.apply_outcome(draft, outcome)

    # At app shutdown
    coordinator.shutdown()
"""

from __future__ import annotations

import itertools
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from core.api_client import CollaboratorClient
from core.exceptions import CollaboratorError
from logging_config import bind_session, get_logger, set_thread_name
from models.shipment import Receiver, ShipmentDraft
from models.validation_result import ValidationKind, ValidationOutcome


# Module logger
logger = get_logger(__name__)

POSTAL_CARRIER_CODE = "FDXE"

POSTAL_TRIGGERS = frozenset({"postal_code", "country", "state"})
ADDRESS_TRIGGERS = frozenset({"address", "city", "country"})

DEFAULT_ERRORS = {
    ValidationKind.POSTAL_CODE: "Postal code could not be validated",
    ValidationKind.ADDRESS: "Address could not be validated",
}

TaskKey = Tuple[str, ValidationKind]

DEFAULT_SESSION_TTL = 3600.0


def postal_fingerprint(receiver: Receiver) -> str:
    return "|".join((receiver.postal_code.strip(), receiver.country, receiver.state.strip().upper()))


def address_fingerprint(receiver: Receiver) -> str:
    return "|".join((receiver.address.strip(), receiver.city.strip(), receiver.country))


def strip_zip_extension(postal_code: str, country: Optional[str]) -> str:
    """US ZIP+4 codes are kept as the 5-digit ZIP."""
    if country == "US" and "-" in postal_code:
        return postal_code.split("-")[0]
    return postal_code


class ValidationOutcomeStore:
    """
    Thread-safe storage for finished validations.

    Holds the latest outcome per (session, kind). collect() removes what it
    returns (consume-once).
    """

    def __init__(self):
        self._outcomes: Dict[str, Dict[ValidationKind, ValidationOutcome]] = {}
        self._lock = threading.Lock()

    def put(self, session_key: str, outcome: ValidationOutcome) -> None:
        with self._lock:
            self._outcomes.setdefault(session_key, {})[outcome.kind] = outcome
            logger.debug(f"Stored {outcome.kind.value} outcome for session {session_key[:8]}")

    def discard(self, session_key: str, kind: ValidationKind) -> None:
        with self._lock:
            self._outcomes.get(session_key, {}).pop(kind, None)

    def collect(self, session_key: str) -> List[ValidationOutcome]:
        with self._lock:
            outcomes = self._outcomes.pop(session_key, {})
        return sorted(outcomes.values(), key=lambda o: o.kind.value, reverse=True)

    def clear(self) -> int:
        with self._lock:
            count = sum(len(v) for v in self._outcomes.values())
            self._outcomes.clear()
            logger.info(f"Cleared {count} validation outcomes from store")
            return count


class AddressValidationCoordinator:
    """
    Runs receiver validations on debounce timers.

    Attributes:
        postal_debounce: Seconds to wait after the last postal change
        address_debounce: Seconds to wait after the last address change
        session_ttl: Seconds without a schedule before a session's memos
            and uncollected outcomes are dropped
    """

    def __init__(
        self,
        client: CollaboratorClient,
        postal_debounce: float = 1.0,
        address_debounce: float = 1.5,
        session_ttl: float = DEFAULT_SESSION_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self.postal_debounce = postal_debounce
        self.address_debounce = address_debounce
        self.session_ttl = session_ttl
        self._clock = clock

        self._store = ValidationOutcomeStore()
        self._generations: Dict[TaskKey, int] = {}
        self._timers: Dict[TaskKey, threading.Timer] = {}
        self._memo: Dict[TaskKey, str] = {}
        self._touched: Dict[str, float] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()
        self._closed = False

        logger.info(
            f"AddressValidationCoordinator initialized "
            f"(postal {postal_debounce}s, address {address_debounce}s)"
        )

    @property
    def store(self) -> ValidationOutcomeStore:
        return self._store

    # =========================================================================
    # SCHEDULING (request thread)
    # =========================================================================

    def schedule(
        self,
        session_key: str,
        receiver: Receiver,
        changed_fields: Iterable[str],
    ) -> List[ValidationKind]:
        """
        Schedule the validations whose watched fields changed.

        Args:
            session_key: Owner of the validation tasks
            receiver: Receiver after the edit
            changed_fields: Receiver attribute names the user edited

        Returns:
            Kinds that were (re)scheduled
        """
        changed = frozenset(changed_fields)
        scheduled = []

        if changed & POSTAL_TRIGGERS and self.schedule_postal(session_key, receiver):
            scheduled.append(ValidationKind.POSTAL_CODE)
        if changed & ADDRESS_TRIGGERS and self.schedule_address(session_key, receiver):
            scheduled.append(ValidationKind.ADDRESS)

        return scheduled

    def schedule_postal(self, session_key: str, receiver: Receiver) -> bool:
        if not receiver.postal_code.strip() or not receiver.country.strip():
            return False

        payload = {
            "postalCode": receiver.postal_code,
            "countryCode": receiver.country,
            "stateOrProvinceCode": receiver.state.strip().upper() or None,
            "carrierCode": POSTAL_CARRIER_CODE,
        }
        return self._schedule(
            session_key,
            ValidationKind.POSTAL_CODE,
            postal_fingerprint(receiver),
            payload,
            self.postal_debounce,
        )

    def schedule_address(self, session_key: str, receiver: Receiver) -> bool:
        if not receiver.address.strip() or not receiver.city.strip() or not receiver.country.strip():
            return False

        payload = {
            "streetLines": [receiver.address],
            "city": receiver.city,
            "stateOrProvinceCode": receiver.state or None,
            "postalCode": receiver.postal_code or None,
            "countryCode": receiver.country,
        }
        return self._schedule(
            session_key,
            ValidationKind.ADDRESS,
            address_fingerprint(receiver),
            payload,
            self.address_debounce,
        )

    def _schedule(
        self,
        session_key: str,
        kind: ValidationKind,
        value: str,
        payload: Dict[str, Any],
        delay: float,
    ) -> bool:
        key = (session_key, kind)

        with self._lock:
            if self._closed:
                return False

            now = self._clock()
            self._prune_idle(now)
            self._touched[session_key] = now

            if self._memo.get(key) == value:
                logger.debug(f"{kind.value} value unchanged since last validation, skipping")
                return False

            pending = self._timers.pop(key, None)
            if pending is not None:
                pending.cancel()

            generation = next(self._sequence)
            self._generations[key] = generation

            timer = threading.Timer(
                delay,
                self._run,
                args=(session_key, kind, generation, value, payload),
            )
            timer.name = f"Validate-{kind.value}"
            timer.daemon = True
            self._timers[key] = timer

        # A newer task supersedes anything not yet collected
        self._store.discard(session_key, kind)
        timer.start()
        logger.debug(f"Scheduled {kind.value} validation #{generation} in {delay}s")
        return True

    def _prune_idle(self, now: float) -> None:
        """Drop memos, records and outcomes of idle sessions. Caller holds the lock."""
        idle = [s for s, touched in self._touched.items() if now - touched > self.session_ttl]
        for session_key in idle:
            del self._touched[session_key]
            for key in [k for k in self._memo if k[0] == session_key]:
                del self._memo[key]
            for key in [k for k in self._generations if k[0] == session_key]:
                if key not in self._timers:
                    del self._generations[key]
            self._store.collect(session_key)
        if idle:
            logger.info(f"Pruned {len(idle)} idle validation session(s)")

    # =========================================================================
    # TIMER THREAD
    # =========================================================================

    def _run(
        self,
        session_key: str,
        kind: ValidationKind,
        generation: int,
        value: str,
        payload: Dict[str, Any],
    ) -> None:
        set_thread_name(f"Validate-{kind.value}")
        bind_session(session_key)

        if not self._is_current(session_key, kind, generation):
            logger.debug(f"{kind.value} validation #{generation} superseded before start")
            return

        logger.info(f"Validating {kind.value} #{generation}")
        try:
            if kind is ValidationKind.POSTAL_CODE:
                response = self._client.validate_postal_code(payload) or {}
                outcome = self._postal_outcome(generation, value, response)
            else:
                response = self._client.validate_address(payload) or {}
                outcome = self._address_outcome(generation, value, payload, response)
        except CollaboratorError as e:
            logger.warning(f"{kind.value} validation #{generation} failed: {e.message}")
            outcome = self._unavailable(kind, generation, value, e.message)
        except (AttributeError, TypeError, KeyError) as e:
            logger.error(f"{kind.value} validation #{generation}: malformed response: {e}")
            outcome = self._unavailable(
                kind, generation, value, "Unexpected response from the validation service"
            )

        key = (session_key, kind)
        with self._lock:
            if self._generations.get(key) != generation:
                logger.debug(f"Dropping stale {kind.value} outcome #{generation}")
                return
            self._timers.pop(key, None)
            del self._generations[key]
            if not outcome.unavailable:
                self._memo[key] = outcome.validated_value

        self._store.put(session_key, outcome)
        logger.info(f"{kind.value} validation #{generation}: valid={outcome.is_valid}")

    @staticmethod
    def _unavailable(kind: ValidationKind, generation: int, value: str, error: str) -> ValidationOutcome:
        return ValidationOutcome(
            kind=kind,
            generation=generation,
            is_valid=False,
            validated_value=value,
            error=error,
            unavailable=True,
        )

    def _is_current(self, session_key: str, kind: ValidationKind, generation: int) -> bool:
        with self._lock:
            return self._generations.get((session_key, kind)) == generation

    @staticmethod
    def _postal_outcome(generation: int, value: str, response: Dict[str, Any]) -> ValidationOutcome:
        errors = response.get("errors") or []
        return ValidationOutcome(
            kind=ValidationKind.POSTAL_CODE,
            generation=generation,
            is_valid=bool(response.get("isValid")),
            validated_value=value,
            city=response.get("city") or None,
            state=response.get("stateOrProvinceCode") or None,
            error=None if response.get("isValid") else (errors[0] if errors else None),
        )

    @staticmethod
    def _address_outcome(
        generation: int,
        value: str,
        payload: Dict[str, Any],
        response: Dict[str, Any],
    ) -> ValidationOutcome:
        errors = response.get("errors") or []
        if not response.get("isValid"):
            return ValidationOutcome(
                kind=ValidationKind.ADDRESS,
                generation=generation,
                is_valid=False,
                validated_value=value,
                error=errors[0] if errors else None,
            )

        standardized = response.get("standardizedAddress") or {}
        if not standardized:
            return ValidationOutcome(
                kind=ValidationKind.ADDRESS,
                generation=generation,
                is_valid=True,
                validated_value=value,
                deliverability=response.get("deliverability"),
            )

        address = ", ".join(standardized.get("streetLines") or [])
        city = standardized.get("city") or payload["city"]
        postal_code = standardized.get("postalCode")
        if postal_code:
            postal_code = strip_zip_extension(postal_code, standardized.get("countryCode"))

        # Memoize what the form will hold once the outcome is applied
        normalized = "|".join((address.strip(), city.strip(), payload["countryCode"]))
        return ValidationOutcome(
            kind=ValidationKind.ADDRESS,
            generation=generation,
            is_valid=True,
            validated_value=normalized,
            city=city,
            state=standardized.get("stateOrProvinceCode") or None,
            postal_code=postal_code or None,
            address=address or None,
            deliverability=response.get("deliverability"),
        )

    # =========================================================================
    # RESULTS (request thread)
    # =========================================================================

    def collect(self, session_key: str) -> List[ValidationOutcome]:
        """Finished outcomes for the session (removed on read)."""
        return self._store.collect(session_key)

    def is_pending(self, session_key: str) -> bool:
        with self._lock:
            return any(
                key[0] == session_key and timer.is_alive()
                for key, timer in self._timers.items()
            )

    @staticmethod
    def apply_outcome(
        draft: ShipmentDraft,
        outcome: ValidationOutcome,
    ) -> Tuple[ShipmentDraft, Dict[str, str]]:
        """
        Write normalized values and field errors onto the draft.

        Returns:
            (next draft, notification dict)
        """
        if outcome.unavailable:
            return draft, {
                "level": "error",
                "title": "Validation Error",
                "message": outcome.error or "Failed to validate address",
            }

        if not outcome.is_valid:
            message = outcome.error or DEFAULT_ERRORS[outcome.kind]
            title = (
                "Postal Code Validation"
                if outcome.kind is ValidationKind.POSTAL_CODE
                else "Address Validation"
            )
            return draft.with_field_error(outcome.error_field, message), {
                "level": "error",
                "title": title,
                "message": message,
            }

        changes: Dict[str, Any] = {}
        if outcome.kind is ValidationKind.POSTAL_CODE:
            if outcome.city:
                changes["city"] = outcome.city
            if outcome.state:
                changes["state"] = outcome.state
            title = "Postal Code Validated"
            message = (
                f"Valid postal code for {outcome.city}, {outcome.state or ''}".rstrip(", ")
                if outcome.city
                else "Postal code is valid"
            )
        else:
            if outcome.address:
                changes["address"] = outcome.address
            if outcome.city:
                changes["city"] = outcome.city
            if outcome.state:
                changes["state"] = outcome.state
            if outcome.postal_code:
                changes["postal_code"] = outcome.postal_code
            title = "Address Validated"
            message = (
                "Address is valid and deliverable"
                if outcome.deliverability == "DELIVERABLE"
                else "Address validated successfully"
            )

        updated = replace(draft, receiver=replace(draft.receiver, **changes))
        updated = updated.clear_field_error(outcome.error_field)
        return updated, {"level": "success", "title": title, "message": message}

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def wait_for_pending(self, timeout: float = 5.0) -> None:
        """Block until every scheduled timer has finished."""
        with self._lock:
            timers = list(self._timers.values())
        for timer in timers:
            timer.join(timeout=timeout)
            if timer.is_alive():
                logger.warning(f"{timer.name} did not finish in time")

    def forget(self, session_key: str) -> None:
        """Cancel a session's timers and drop its memo and outcomes."""
        with self._lock:
            for key in [k for k in self._timers if k[0] == session_key]:
                self._timers.pop(key).cancel()
            for key in [k for k in self._memo if k[0] == session_key]:
                self._memo.pop(key)
            for key in [k for k in self._generations if k[0] == session_key]:
                # A timer thread already past cancel() finds no record and drops its outcome
                del self._generations[key]
            self._touched.pop(session_key, None)
        self._store.collect(session_key)

    def shutdown(self) -> None:
        """Cancel pending timers; called at app shutdown."""
        with self._lock:
            self._closed = True
            timers = list(self._timers.values())
            self._timers.clear()

        for timer in timers:
            timer.cancel()
        self._store.clear()
        logger.info(f"Validation coordinator shut down ({len(timers)} timer(s) cancelled)")
