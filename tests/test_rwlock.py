# tests/test_rwlock.py

from __future__ import annotations

import threading

import pytest

from tasknotes.storage.rwlock import ReadWriteLock


def test_readers_share_the_lock() -> None:
    lock = ReadWriteLock()
    lock.acquire_read()
    got = threading.Event()

    def reader() -> None:
        with lock.read_locked():
            got.set()

    th = threading.Thread(target=reader)
    th.start()
    assert got.wait(timeout=5.0)
    th.join(timeout=5.0)
    lock.release_read()


def test_writer_waits_for_readers_and_excludes_them() -> None:
    lock = ReadWriteLock()
    lock.acquire_read()
    wrote = threading.Event()

    def writer() -> None:
        with lock.write_locked():
            wrote.set()

    th = threading.Thread(target=writer)
    th.start()
    assert not wrote.wait(timeout=0.1)

    lock.release_read()
    assert wrote.wait(timeout=5.0)
    th.join(timeout=5.0)


def test_reader_waits_for_writer() -> None:
    lock = ReadWriteLock()
    lock.acquire_write()
    read = threading.Event()

    def reader() -> None:
        with lock.read_locked():
            read.set()

    th = threading.Thread(target=reader)
    th.start()
    assert not read.wait(timeout=0.1)

    lock.release_write()
    assert read.wait(timeout=5.0)
    th.join(timeout=5.0)


def test_unbalanced_release_raises() -> None:
    lock = ReadWriteLock()
    with pytest.raises(RuntimeError):
        lock.release_read()
    with pytest.raises(RuntimeError):
        lock.release_write()
