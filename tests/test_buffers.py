from __future__ import annotations

import threading

from machine_monitor.core.buffers import RollingBuffer


def test_rolling_buffer_basic() -> None:
    buf: RollingBuffer[int] = RollingBuffer(capacity=3)
    buf.append(1)
    buf.append(2)
    buf.append(3)
    assert buf.size() == 3
    buf.append(4)
    assert buf.size() == 3
    assert buf.read() == [2, 3, 4]
    assert buf.latest() == 4


def test_chronological_keeps_last_thousand() -> None:
    buf: RollingBuffer[int] = RollingBuffer(capacity=1000)
    for i in range(1001):
        buf.append(i)
    items = buf.read()
    assert len(items) == 1000
    assert items == list(range(1, 1001))


def test_newest_first_keeps_ten_most_recent() -> None:
    buf: RollingBuffer[int] = RollingBuffer(capacity=10, newest_first=True)
    for i in range(11):
        buf.append(i)
    assert buf.read() == list(range(10, 0, -1))
    assert buf.latest() == 10


def test_read_limit() -> None:
    chrono: RollingBuffer[int] = RollingBuffer(capacity=10)
    newest: RollingBuffer[int] = RollingBuffer(capacity=10, newest_first=True)
    for i in range(6):
        chrono.append(i)
        newest.append(i)
    assert chrono.read(2) == [4, 5]
    assert newest.read(2) == [5, 4]
    assert chrono.read(0) == []


def test_limit_larger_than_size_returns_everything() -> None:
    buf: RollingBuffer[int] = RollingBuffer(capacity=10)
    for i in range(3):
        buf.append(i)
    assert buf.read(5) == [0, 1, 2]


def test_empty_buffer() -> None:
    buf: RollingBuffer[int] = RollingBuffer(capacity=2)
    assert buf.read(5) == []
    assert buf.latest() is None


def test_concurrent_appends_respect_capacity() -> None:
    buf: RollingBuffer[int] = RollingBuffer(capacity=50)

    def writer(offset: int) -> None:
        for i in range(500):
            buf.append(offset + i)

    threads = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(4)]
    for t in threads:
        t.start()
    for _ in range(200):
        assert len(buf.read(100)) <= 50
    for t in threads:
        t.join()
    assert buf.size() == 50
