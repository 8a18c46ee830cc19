"""Tests for keyed locks."""

import threading
import time

from waitlist.locks import KeyedLocks, job_key, queue_key


class TestKeys:
    def test_queue_key(self):
        assert queue_key("biz1", "svc1") == "queue:biz1:svc1"

    def test_job_key(self):
        assert job_key("abc") == "job:abc"


class TestKeyedLocks:
    def test_reentrant(self):
        locks = KeyedLocks()
        with locks.hold("queue:biz1:svc1"):
            with locks.hold("queue:biz1:svc1"):
                assert locks.active_keys() == ["queue:biz1:svc1"]

    def test_released_locks_are_dropped(self):
        locks = KeyedLocks()
        with locks.hold("queue:biz1:svc1"):
            pass
        assert locks.active_keys() == []

    def test_same_key_is_serialized(self):
        locks = KeyedLocks()
        inside = []
        overlaps = []

        def work():
            with locks.hold("queue:biz1:svc1"):
                if inside:
                    overlaps.append(True)
                inside.append(True)
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert locks.active_keys() == []

    def test_different_keys_do_not_block(self):
        locks = KeyedLocks()
        entered = threading.Event()

        def other():
            with locks.hold("queue:biz2:svc1"):
                entered.set()

        with locks.hold("queue:biz1:svc1"):
            thread = threading.Thread(target=other)
            thread.start()
            assert entered.wait(timeout=1)
            thread.join()
