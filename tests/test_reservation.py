import threading

import pytest
from conftest import SlowStore, shirt_payload

from storefront.errors import PersistenceError
from storefront.services.reservation import (
    INSUFFICIENT_STOCK,
    LockingReservationCoordinator,
    TransactionalReservationCoordinator,
)
from storefront.services.stock_ledger import StockLedger


def test_partial_availability_reserves_nothing(coordinator, ledger):
    ledger.set("shirt", {"S": 1, "M": 0, "L": 0, "XL": 0})
    result = coordinator.reserve(shirt_payload(("shirt", "S", 1), ("shirt", "M", 1)))
    assert result.ok is False
    assert result.error == INSUFFICIENT_STOCK
    assert result.shortfalls == (("shirt", "M", 1, 0),)
    assert ledger.get("shirt") == {"S": 1, "M": 0, "L": 0, "XL": 0}


def test_rejection_does_not_write(coordinator, ledger, store):
    ledger.set("shirt", {"S": 1})
    calls_before = store.write_calls
    coordinator.reserve(shirt_payload(("shirt", "S", 2)))
    assert store.write_calls == calls_before


def test_success_decrements_exactly_the_demand(coordinator, ledger):
    ledger.set("shirt", {"S": 3, "M": 4, "L": 5, "XL": 6})
    result = coordinator.reserve(shirt_payload(("shirt", "S", 2)))
    assert result.ok is True
    assert result.error is None
    assert ledger.get("shirt") == {"S": 1, "M": 4, "L": 5, "XL": 6}


def test_multi_product_reservation(coordinator, ledger):
    ledger.set("shirt", {"S": 2, "M": 2})
    ledger.set("hoodie", {"XL": 1})
    result = coordinator.reserve(
        shirt_payload(("shirt", "S", 1), ("shirt", "S", 1), ("shirt", "M", 1), ("hoodie", "XL", 1))
    )
    assert result.ok
    assert ledger.get("shirt") == {"S": 0, "M": 1, "L": 0, "XL": 0}
    assert ledger.get("hoodie") == {"S": 0, "M": 0, "L": 0, "XL": 0}


def test_multi_product_shortage_leaves_every_product_untouched(coordinator, ledger):
    ledger.set("shirt", {"S": 2})
    ledger.set("hoodie", {"XL": 0})
    result = coordinator.reserve(shirt_payload(("shirt", "S", 2), ("hoodie", "XL", 1)))
    assert not result.ok
    assert ledger.get("shirt")["S"] == 2


def test_empty_payload_is_a_successful_no_op(coordinator, store):
    calls_before = store.write_calls
    result = coordinator.reserve({"items": [], "total": 0})
    assert result.ok is True
    assert result.to_dict() == {"ok": True}
    assert store.write_calls == calls_before


def test_unknown_sizes_are_skipped(coordinator, ledger):
    ledger.set("shirt", {"S": 1})
    result = coordinator.reserve(shirt_payload(("shirt", "S", 1), ("shirt", "XXL", 3)))
    assert result.ok
    assert ledger.get("shirt") == {"S": 0, "M": 0, "L": 0, "XL": 0}


def test_rejected_result_to_dict(coordinator):
    result = coordinator.reserve(shirt_payload(("shirt", "S", 1)))
    assert result.to_dict() == {"ok": False, "error": "Insufficient stock"}


def test_check_matches_reservation_outcome(coordinator, ledger):
    ledger.set("shirt", {"S": 1})
    fits = shirt_payload(("shirt", "S", 1))
    too_big = shirt_payload(("shirt", "S", 2))
    assert coordinator.check(fits) == []
    assert coordinator.check(too_big) == [("shirt", "S", 2, 1)]
    assert ledger.get("shirt")["S"] == 1
    assert coordinator.reserve(too_big).ok is False
    assert coordinator.reserve(fits).ok is True


def test_release_restores_stock(coordinator, ledger):
    ledger.set("shirt", {"S": 2})
    payload = shirt_payload(("shirt", "S", 2))
    assert coordinator.reserve(payload).ok
    coordinator.release(payload)
    assert ledger.get("shirt")["S"] == 2


def test_persistence_failure_propagates_without_partial_state(coordinator, ledger, store):
    ledger.set("shirt", {"S": 2, "M": 2})
    store.fail_writes = True
    with pytest.raises(PersistenceError):
        coordinator.reserve(shirt_payload(("shirt", "S", 1), ("shirt", "M", 1)))
    store.fail_writes = False
    assert ledger.get("shirt") == {"S": 2, "M": 2, "L": 0, "XL": 0}


def _race(reserve_calls):
    barrier = threading.Barrier(len(reserve_calls))
    results = []
    lock = threading.Lock()

    def worker(reserve):
        barrier.wait()
        outcome = reserve()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(call,)) for call in reserve_calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    return results


def test_last_unit_is_sold_once_with_shared_lock():
    store = SlowStore()
    ledger = StockLedger(store)
    ledger.set("shirt", {"M": 1})
    coordinator = LockingReservationCoordinator(ledger)
    payload = shirt_payload(("shirt", "M", 1))

    results = _race([lambda: coordinator.reserve(payload)] * 2)

    assert sorted(result.ok for result in results) == [False, True]
    assert ledger.get("shirt")["M"] == 0


def test_last_unit_is_sold_once_across_independent_coordinators():
    # separate coordinator instances stand in for separate processes sharing one store
    store = SlowStore()
    StockLedger(store).set("shirt", {"M": 1})
    first = TransactionalReservationCoordinator(store)
    second = TransactionalReservationCoordinator(store)
    payload = shirt_payload(("shirt", "M", 1))

    results = _race([lambda: first.reserve(payload), lambda: second.reserve(payload)])

    assert sorted(result.ok for result in results) == [False, True]
    assert StockLedger(store).get("shirt")["M"] == 0


def test_many_buyers_never_oversell(coordinator, ledger):
    ledger.set("shirt", {"L": 3})
    payload = shirt_payload(("shirt", "L", 1))

    results = _race([lambda: coordinator.reserve(payload)] * 8)

    assert sum(result.ok for result in results) == 3
    assert ledger.get("shirt")["L"] == 0
