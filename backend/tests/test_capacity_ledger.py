"""
Tests for the capacity ledger.

The ledger must never let committed totals pass a flight's limits, whether
writers arrive one after another or race each other on a file-backed
database.
"""

import pytest
import threading
from decimal import Decimal
from unittest.mock import patch

from helitour.services import (
    CapacityExceeded,
    CapacityLedger,
    FlightNotFound,
    LedgerInconsistency,
    PassengerLimitExceeded,
    WeightLimitExceeded,
)

from conftest import seed_flight


class TestApplyCommit:

    def test_commit_adds_to_totals(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store)

        written = ledger.apply_commit(flight.flight_id, 3, Decimal("240"))

        assert written.current_passengers == 3
        assert written.current_weight_kg == Decimal("240")
        assert written.capacity_version == 1
        assert store.read_flight(flight.flight_id).current_passengers == 3

    def test_commit_to_exact_limit(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store)

        written = ledger.apply_commit(flight.flight_id, 4, Decimal("400"))

        assert written.current_passengers == 4
        assert written.current_weight_kg == Decimal("400")

    def test_passenger_limit(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store)
        ledger.apply_commit(flight.flight_id, 3, Decimal("240"))

        with pytest.raises(PassengerLimitExceeded) as exc_info:
            ledger.apply_commit(flight.flight_id, 2, Decimal("100"))

        assert exc_info.value.code == "passenger_limit"
        assert exc_info.value.details["remaining_seats"] == 1
        assert store.read_flight(flight.flight_id).current_passengers == 3

    def test_weight_limit(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store)
        ledger.apply_commit(flight.flight_id, 2, Decimal("350"))

        with pytest.raises(WeightLimitExceeded) as exc_info:
            ledger.apply_commit(flight.flight_id, 1, Decimal("60"))

        assert exc_info.value.code == "weight_limit"
        assert exc_info.value.details["remaining_weight_kg"] == Decimal("50")

    def test_passenger_limit_reported_before_weight(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store)

        with pytest.raises(PassengerLimitExceeded):
            ledger.apply_commit(flight.flight_id, 5, Decimal("500"))

    def test_unknown_flight(self, store):
        with pytest.raises(FlightNotFound):
            CapacityLedger(store).apply_commit(999, 1, Decimal("70"))

    def test_lost_race_rereads_and_retries(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store)
        real_update = store.conditional_update_flight_totals
        calls = []

        def racing_update(flight_id, expected, new_passengers, new_weight_kg, session=None):
            calls.append(expected.version)
            if len(calls) == 1:
                # Another commit lands between our read and our write
                real_update(flight_id, expected, 2, Decimal("160"), session=session)
            return real_update(flight_id, expected, new_passengers, new_weight_kg, session=session)

        with patch.object(store, "conditional_update_flight_totals", side_effect=racing_update):
            written = ledger.apply_commit(flight.flight_id, 1, Decimal("70"))

        assert calls == [0, 1]
        assert written.current_passengers == 3
        assert written.current_weight_kg == Decimal("230")

    def test_lost_race_revalidates_against_new_totals(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store)
        real_update = store.conditional_update_flight_totals

        def racing_update(flight_id, expected, new_passengers, new_weight_kg, session=None):
            if expected.version == 0:
                real_update(flight_id, expected, 3, Decimal("240"), session=session)
            return real_update(flight_id, expected, new_passengers, new_weight_kg, session=session)

        with patch.object(store, "conditional_update_flight_totals", side_effect=racing_update):
            with pytest.raises(PassengerLimitExceeded):
                ledger.apply_commit(flight.flight_id, 2, Decimal("150"))

        assert store.read_flight(flight.flight_id).current_passengers == 3

    def test_retries_are_bounded(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store, max_retries=3)

        with patch.object(store, "conditional_update_flight_totals", return_value=False) as update:
            with pytest.raises(CapacityExceeded) as exc_info:
                ledger.apply_commit(flight.flight_id, 1, Decimal("70"))

        assert update.call_count == 3
        assert exc_info.value.code == "capacity_exceeded"


class TestApplyRollback:

    def test_rollback_returns_capacity(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store)
        ledger.apply_commit(flight.flight_id, 3, Decimal("240"))

        written = ledger.apply_rollback(flight.flight_id, 2, Decimal("150"))

        assert written.current_passengers == 1
        assert written.current_weight_kg == Decimal("90")
        assert written.capacity_version == 2

    def test_rollback_cannot_go_negative(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store)
        ledger.apply_commit(flight.flight_id, 1, Decimal("70"))

        with pytest.raises(LedgerInconsistency):
            ledger.apply_rollback(flight.flight_id, 2, Decimal("140"))

        assert store.read_flight(flight.flight_id).current_passengers == 1

    def test_rollback_that_never_lands(self, store):
        flight = seed_flight(store)
        ledger = CapacityLedger(store, max_retries=2)
        ledger.apply_commit(flight.flight_id, 1, Decimal("70"))

        with patch.object(store, "conditional_update_flight_totals", return_value=False):
            with pytest.raises(LedgerInconsistency):
                ledger.apply_rollback(flight.flight_id, 1, Decimal("70"))


@pytest.mark.slow
class TestConcurrentCommits:
    """Real threads against a file-backed database."""

    def test_racing_commits_never_overbook(self, file_db_config):
        from helitour.database.store import BookingStore

        store = BookingStore(file_db_config)
        flight = seed_flight(store)
        ledger = CapacityLedger(store, max_retries=50)
        start = threading.Barrier(8)
        outcomes = []
        lock = threading.Lock()

        def worker():
            start.wait()
            try:
                ledger.apply_commit(flight.flight_id, 1, Decimal("80"))
                result = "ok"
            except CapacityExceeded as e:
                result = e.code
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        final = store.read_flight(flight.flight_id)
        assert outcomes.count("ok") == 4
        assert final.current_passengers == 4
        assert final.current_weight_kg == Decimal("320")
        assert final.capacity_version == 4
