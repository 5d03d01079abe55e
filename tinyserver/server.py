import logging
import socket
import threading
from typing import Optional, Tuple

from .access import AdmissionMiddleware
from .config import Config
from .engine import Engine, HTTPEngine
from .handler import FileHandler
from .pool import WorkerPool

logger = logging.getLogger(__name__)


class ThreadedHTTPServer:
    def __init__(self, config: Config) -> None:
        self.config = config

        # Created on start()
        self._listen_sock: Optional[socket.socket] = None
        self._engine: Optional[Engine] = None
        self._pool: Optional[WorkerPool] = None

        # Stop coordination
        self._stop_event = threading.Event()

    @property
    def server_address(self) -> Tuple[str, int]:
        if self._listen_sock is None:
            raise RuntimeError("server is not started")
        return self._listen_sock.getsockname()[:2]

    def build_handler(self):
        return AdmissionMiddleware(FileHandler(self.config.root), self.config.allowlist)

    def start(self) -> None:
        """Bind the listener and start workers. Bind errors propagate."""
        self._stop_event.clear()

        self._listen_sock = self._create_listen_socket()
        self._engine = HTTPEngine(self.config, self.build_handler())
        self._pool = WorkerPool(self.config, self._engine)

        self._pool.start()

    def serve_forever(self) -> None:
        try:
            self._accept_loop()
        finally:
            self._cleanup()

    def run(self) -> None:
        self.start()
        self.serve_forever()

    def stop(self) -> None:
        self._stop_event.set()

        # unblock accept() immediately
        if self._listen_sock is not None:
            try:
                self._listen_sock.close()
            except OSError:
                pass

    def _cleanup(self) -> None:
        # Closing listen socket unblocks accept()
        if self._listen_sock is not None:
            try:
                self._listen_sock.close()
            except OSError:
                pass

        if self._pool is not None:
            self._pool.stop()

        self._listen_sock = None
        self._pool = None
        self._engine = None

    def _create_listen_socket(self) -> socket.socket:
        """
        Create/bind/listen.
        Uses SO_REUSEADDR to make restarts easier during development.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError:
            sock.close()
            raise

        sock.settimeout(self.config.accept_timeout)

        return sock

    def _accept_loop(self) -> None:
        """
        Accept connections and submit to worker pool.
        Exits when stop_event is set or listen socket is closed.
        """
        assert self._listen_sock is not None
        assert self._pool is not None

        while not self._stop_event.is_set():
            try:
                conn, addr = self._listen_sock.accept()
            except socket.timeout:
                continue
            except OSError:
                if self._stop_event.is_set():
                    # closed by stop()
                    break
                raise

            try:
                conn.settimeout(self.config.recv_timeout)
                conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError:
                try:
                    conn.close()
                except OSError:
                    pass
                continue

            # Submit to pool. Pool must close conn after handling.
            try:
                self._pool.submit(conn, addr)
            except Exception:
                logger.exception("cannot submit connection from %s", addr)
                try:
                    conn.close()
                except OSError:
                    pass
