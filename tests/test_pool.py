import socket
import threading

from tinyserver.config import Config
from tinyserver.engine import Engine
from tinyserver.pool import WorkerPool


class RecordingEngine(Engine):
    def __init__(self):
        self.seen = []
        self.done = threading.Event()

    def process(self, conn, addr):
        self.seen.append(addr)
        self.done.set()


class BrokenEngine(Engine):
    def __init__(self):
        self.done = threading.Event()

    def process(self, conn, addr):
        self.done.set()
        raise RuntimeError("boom")


def test_submitted_connection_is_served_and_closed():
    engine = RecordingEngine()
    pool = WorkerPool(Config(workers=1), engine)
    a, b = socket.socketpair()
    pool.start()
    try:
        pool.submit(a, ("127.0.0.1", 1234))
        assert engine.done.wait(5)
    finally:
        pool.stop()
        b.close()

    assert engine.seen == [("127.0.0.1", 1234)]
    assert a.fileno() == -1


def test_worker_survives_engine_errors():
    engine = BrokenEngine()
    pool = WorkerPool(Config(workers=1), engine)
    a, b = socket.socketpair()
    pool.start()
    try:
        pool.submit(a, ("127.0.0.1", 1))
        assert engine.done.wait(5)
        assert all(t.is_alive() for t in pool._threads)
    finally:
        pool.stop()
        b.close()


def test_full_queue_drops_connection():
    pool = WorkerPool(Config(workers=1, queue_size=1), RecordingEngine())
    first, peer1 = socket.socketpair()
    second, peer2 = socket.socketpair()
    try:
        # not started, so the queue never drains
        pool.submit(first, ("127.0.0.1", 1))
        pool.submit(second, ("127.0.0.1", 2))
        assert second.fileno() == -1
        assert first.fileno() != -1
    finally:
        pool.stop()
        peer1.close()
        peer2.close()

    assert first.fileno() == -1


def test_submit_after_stop_closes_connection():
    pool = WorkerPool(Config(workers=1), RecordingEngine())
    pool.start()
    pool.stop()
    a, b = socket.socketpair()

    pool.submit(a, ("127.0.0.1", 1))

    assert a.fileno() == -1
    b.close()
