import threading

import pytest

from retail_pos.utils.locks import KeyedLocks


def test_locks_are_dropped_after_release():
    locks = KeyedLocks()
    with locks.hold((1, 1), (2, 1)):
        assert len(locks) == 2
    assert len(locks) == 0


def test_hold_is_reentrant():
    locks = KeyedLocks()
    with locks.hold("reg-1"):
        with locks.hold("reg-1", "reg-2"):
            assert len(locks) == 2
        assert len(locks) == 1
    assert len(locks) == 0


def test_released_on_error():
    locks = KeyedLocks()
    with pytest.raises(RuntimeError):
        with locks.hold("k"):
            raise RuntimeError("boom")
    assert len(locks) == 0


def test_other_thread_waits_for_holder():
    locks = KeyedLocks()
    entered = threading.Event()
    got_it = []

    def worker():
        entered.set()
        with locks.hold("k"):
            got_it.append(True)

    with locks.hold("k"):
        t = threading.Thread(target=worker)
        t.start()
        entered.wait(1)
        t.join(0.1)
        assert got_it == []
    t.join(1)
    assert got_it == [True]
    assert len(locks) == 0
