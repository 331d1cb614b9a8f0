from __future__ import annotations

import logging
import signal
import socket
import threading
import time

from .config import ChatRuntimeConfig
from .rooms import RoomRegistry
from .router import Dispatcher
from .session import Session
from .stats import StatsManager


class SocketStream:
    """Line-oriented stream over a connected socket.

    ``close`` shuts the socket down first so a read blocked in another thread
    returns immediately.
    """

    def __init__(self, conn: socket.socket, *, max_line: int = 4096) -> None:
        self.conn = conn
        self.max_line = max_line
        self._rfile = conn.makefile("rb")
        self._wfile = conn.makefile("wb")

    def readline(self) -> bytes:
        """Read one line of at most max_line bytes.

        The remainder of an over-long line is read and dropped, so it never
        turns into a command of its own.
        """
        line = self._rfile.readline(self.max_line)
        if len(line) >= self.max_line and not line.endswith(b"\n"):
            while True:
                rest = self._rfile.readline(self.max_line)
                if not rest or rest.endswith(b"\n"):
                    break
        return line

    def write(self, data: bytes) -> int:
        return self._wfile.write(data)

    def flush(self) -> None:
        self._wfile.flush()

    def close(self) -> None:
        try:
            self.conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        for f in (self._wfile, self._rfile):
            try:
                f.close()
            except OSError:
                pass
        self.conn.close()


def format_peer(addr) -> str:
    if isinstance(addr, tuple) and len(addr) >= 2:
        host, port = addr[0], addr[1]
        if ":" in str(host):
            return f"[{host}]:{port}"
        return f"{host}:{port}"
    return str(addr)


class ChatService:
    def __init__(self, config: ChatRuntimeConfig) -> None:
        self.config = config
        self.log = logging.getLogger("telnetchat.service")

        # Owned here and handed to every session; no module-level state.
        self.registry = RoomRegistry()
        self.stats_manager = StatsManager(self.registry)
        self.dispatcher = Dispatcher(
            server_name=config.server_name, stats=self.stats_manager
        )

        self._state_lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._shutdown = threading.Event()

        self._listener: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int] | None:
        if self._listener is None:
            return None
        host, port = self._listener.getsockname()[:2]
        return host, port

    def start(self) -> None:
        """Bind the listening socket and start accepting connections.

        OSError from bind/listen propagates to the caller.
        """
        if self._listener is not None:
            return

        self.stats_manager.set_start_time()

        listener = socket.create_server(
            (self.config.host, int(self.config.port)),
            backlog=int(self.config.listen_backlog),
        )
        # Periodic wakeups let the accept loop notice stop().
        listener.settimeout(0.5)
        self._listener = listener

        self._accept_thread = threading.Thread(
            target=self._accept_loop,
            name="telnetchat-accept",
            daemon=True,
        )
        self._accept_thread.start()

        host, port = self.address or (self.config.host, self.config.port)
        self.log.info("Chat server started on %s:%s", host, port)

    def run_forever(self) -> None:
        if self._listener is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self.stop())
        signal.signal(signal.SIGTERM, lambda *_: self.stop())

        while not self._shutdown.is_set():
            time.sleep(0.25)

    def stop(self) -> None:
        if self._shutdown.is_set():
            return
        self._shutdown.set()

        listener = self._listener
        if listener is not None:
            try:
                listener.close()
            except OSError:
                pass

        if self._accept_thread is not None:
            self._accept_thread.join(timeout=2.0)

        with self._state_lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for sess in sessions:
            sess.close()

        self.log.info("Chat server stopped\n%s", self.stats_manager.format_stats())
        self.registry.clear_all()

    def session_count(self) -> int:
        with self._state_lock:
            return len(self._sessions)

    def _accept_loop(self) -> None:
        listener = self._listener
        if listener is None:
            return

        while not self._shutdown.is_set():
            try:
                conn, addr = listener.accept()
            except TimeoutError:
                continue
            except OSError as e:
                if self._shutdown.is_set():
                    break
                self.log.warning("Failed to accept connection: %s", e)
                continue

            identity = format_peer(addr)
            threading.Thread(
                target=self.handle_connection,
                args=(conn, identity),
                name=f"telnetchat-{identity}",
                daemon=True,
            ).start()

    def handle_connection(self, conn: socket.socket, identity: str) -> None:
        """Serve one accepted connection on the calling thread."""
        session = Session(
            identity,
            SocketStream(conn, max_line=int(self.config.max_line_bytes)),
            self.registry,
            name=self.config.default_nick,
            stats=self.stats_manager,
        )

        with self._state_lock:
            self._sessions[identity] = session
        if self._shutdown.is_set():
            session.close()
        self.stats_manager.inc("connections")
        self.log.info("Client connected identity=%s", identity)

        try:
            self.dispatcher.run(session)
        finally:
            session.leave_room()
            session.close()
            self.stats_manager.inc("disconnects")
            self.log.info("Session closed identity=%s", identity)
            with self._state_lock:
                if self._sessions.get(identity) is session:
                    self._sessions.pop(identity, None)
