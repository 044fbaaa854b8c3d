"""
Tests for the debounced refresh scheduler
"""
import threading
import time

from offshore.application.scheduler import RefreshScheduler


def test_burst_coalesces_into_one_run():
    scheduler = RefreshScheduler(delay_seconds=0.2)
    scheduler.start()
    fired = []
    done = threading.Event()

    def _trigger():
        fired.append(10)
        done.set()

    try:
        for _ in range(5):
            scheduler.schedule(10, _trigger)
        assert done.wait(5)
        time.sleep(0.3)
        assert fired == [10]
        assert not scheduler.pending(10)
    finally:
        scheduler.shutdown()


def test_budgets_are_scheduled_independently():
    scheduler = RefreshScheduler(delay_seconds=0.05)
    scheduler.start()
    fired = set()
    both = threading.Barrier(3)

    def _trigger_for(budget_id):
        def _trigger():
            fired.add(budget_id)
            both.wait(5)
        return _trigger

    try:
        scheduler.schedule(1, _trigger_for(1))
        scheduler.schedule(2, _trigger_for(2))
        both.wait(5)
        assert fired == {1, 2}
    finally:
        scheduler.shutdown()


def test_failing_trigger_is_contained():
    scheduler = RefreshScheduler(delay_seconds=0.05)
    scheduler.start()
    done = threading.Event()

    def _broken():
        done.set()
        raise RuntimeError("boom")

    try:
        scheduler.schedule(3, _broken)
        assert done.wait(5)
        assert scheduler.running
    finally:
        scheduler.shutdown()


def test_pending_and_cancel_before_start():
    scheduler = RefreshScheduler(delay_seconds=60)
    scheduler.schedule(7, lambda: None)
    assert scheduler.pending(7)
    scheduler.cancel(7)
    assert not scheduler.pending(7)
    assert not scheduler.running
