"""Tests for core.concurrency — per-key lock registry."""

import threading
import time

import pytest

from core.concurrency import KeyedLockRegistry


class TestKeyedLockRegistry:
    def test_hold_and_release(self):
        registry = KeyedLockRegistry()
        with registry.hold("order-1"):
            assert registry.is_held("order-1")
            assert registry.active_keys == 1
        assert not registry.is_held("order-1")
        assert registry.active_keys == 0

    def test_same_key_times_out_while_held(self):
        registry = KeyedLockRegistry()
        entered = threading.Event()
        release = threading.Event()

        def holder():
            with registry.hold("order-1"):
                entered.set()
                release.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        entered.wait(2)
        try:
            with pytest.raises(TimeoutError):
                with registry.hold("order-1", timeout=0.05):
                    pass
        finally:
            release.set()
            thread.join()
        assert registry.active_keys == 0

    def test_different_keys_do_not_contend(self):
        registry = KeyedLockRegistry()
        with registry.hold("order-1"):
            with registry.hold("order-2", timeout=0.05):
                assert registry.active_keys == 2

    def test_serializes_read_modify_write(self):
        registry = KeyedLockRegistry()
        counter = {"value": 0}

        def bump():
            for _ in range(50):
                with registry.hold("order-1"):
                    current = counter["value"]
                    time.sleep(0)
                    counter["value"] = current + 1

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert counter["value"] == 200
