"""
Tests for run locks.
"""

import threading

import pytest

from arrestlead.lock import LocalRunLock, hold
from arrestlead.model import LockContention


def test_local_lock_is_exclusive_per_scope():
    """Test that one scope cannot be held twice."""
    lock = LocalRunLock()
    assert lock.try_acquire("lee", 0)
    assert not lock.try_acquire("lee", 0)
    assert lock.try_acquire("collier", 0)

    lock.release("lee")
    assert lock.try_acquire("lee", 0)


def test_local_lock_waits_with_timeout():
    """Test a bounded wait that ends when the holder releases."""
    lock = LocalRunLock()
    lock.try_acquire("lee", 0)
    timer = threading.Timer(0.05, lock.release, args=("lee",))
    timer.start()
    try:
        assert lock.try_acquire("lee", 2.0)
    finally:
        timer.cancel()


def test_local_lock_release_unheld_scope():
    """Test that releasing a free scope is harmless."""
    lock = LocalRunLock()
    lock.release("charlotte")
    assert lock.try_acquire("charlotte", 0)


def test_hold_releases_on_error():
    """Test that the context manager always releases."""
    lock = LocalRunLock()
    with pytest.raises(RuntimeError):
        with hold(lock, "lee", 0):
            raise RuntimeError("boom")
    assert lock.try_acquire("lee", 0)


def test_hold_contention():
    """Test that a held scope raises LockContention."""
    lock = LocalRunLock()
    with hold(lock, "lee", 0):
        with pytest.raises(LockContention):
            with hold(lock, "lee", 0):
                pass
