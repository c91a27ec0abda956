"""Tests for the shared/exclusive lock."""

import threading
import time

from tcexporter.sync import RWLock


def test_readers_share():
    lock = RWLock()
    inside = []
    barrier = threading.Barrier(3, timeout=2)

    def reader():
        with lock.read():
            inside.append(1)
            barrier.wait()

    threads = [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=2)

    assert len(inside) == 3


def test_writer_excludes_readers():
    lock = RWLock()
    events = []

    def writer():
        with lock.write():
            events.append("w-start")
            time.sleep(0.1)
            events.append("w-end")

    def reader():
        with lock.read():
            events.append("r")

    w = threading.Thread(target=writer)
    w.start()
    time.sleep(0.02)
    r = threading.Thread(target=reader)
    r.start()
    w.join()
    r.join()

    assert events == ["w-start", "w-end", "r"]
