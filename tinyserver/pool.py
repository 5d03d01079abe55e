from __future__ import annotations

import logging
import queue
import socket
import threading
from dataclasses import dataclass
from typing import Tuple

from .config import Config
from .engine import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Task:
    conn: socket.socket
    addr: Tuple


def _close(conn: socket.socket) -> None:
    try:
        conn.close()
    except OSError:
        pass


class WorkerPool:
    """Fixed set of threads, each serving one connection at a time."""

    poll_timeout = 0.2

    def __init__(self, config: Config, engine: Engine) -> None:
        self.config = config
        self.engine = engine
        self._queue: queue.Queue[Task] = queue.Queue(maxsize=config.queue_size)
        self._threads: list[threading.Thread] = []
        self._stop_event = threading.Event()

    def start(self) -> None:
        if self._threads:
            return
        self._stop_event.clear()
        self._threads = [
            threading.Thread(target=self._worker_loop, name=f"worker-{i}", daemon=True)
            for i in range(self.config.workers)
        ]
        for t in self._threads:
            t.start()

    def submit(self, conn: socket.socket, addr: Tuple) -> None:
        if self._stop_event.is_set():
            _close(conn)
            return

        try:
            self._queue.put_nowait(Task(conn=conn, addr=addr))
        except queue.Full:
            logger.warning("worker queue full; dropping connection from %s", addr)
            _close(conn)

    def stop(self) -> None:
        self._stop_event.set()
        for t in self._threads:
            t.join(timeout=5)
        self._threads = []

        # connections nobody picked up
        while True:
            try:
                _close(self._queue.get_nowait().conn)
            except queue.Empty:
                break

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                task = self._queue.get(timeout=self.poll_timeout)
            except queue.Empty:
                continue

            try:
                self.engine.handle_connection(task.conn, task.addr)
            except Exception:
                logger.exception("unhandled exception serving %s", task.addr)
