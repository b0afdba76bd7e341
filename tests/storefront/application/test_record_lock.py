"""Tests for the keyed record lock registry."""

import threading

from storefront.utils import locks


def test_lock_dropped_once_released():
    with locks.record_lock("order", "o-1"):
        assert "order:o-1" in locks._locks
        with locks.record_lock("order", "o-1"):
            assert locks._locks["order:o-1"].users == 2
        assert "order:o-1" in locks._locks

    assert "order:o-1" not in locks._locks


def test_waiter_runs_after_holder_and_registry_empties():
    entered = threading.Event()
    proceed = threading.Event()
    ran = []

    def holder():
        with locks.record_lock("order", "o-2"):
            entered.set()
            proceed.wait(timeout=5)
            ran.append("holder")

    def waiter():
        with locks.record_lock("order", "o-2"):
            ran.append("waiter")

    first = threading.Thread(target=holder)
    first.start()
    entered.wait(timeout=5)
    second = threading.Thread(target=waiter)
    second.start()
    proceed.set()
    first.join()
    second.join()

    assert ran == ["holder", "waiter"]
    assert "order:o-2" not in locks._locks


def test_checkouts_leave_no_locks_behind(create_promo, place_pending_order):
    create_promo(code="SPRING", value="10")
    for _ in range(3):
        place_pending_order(promo_code="SPRING")

    assert not [key for key in locks._locks if key.startswith(("order:", "promotional_code:"))]
