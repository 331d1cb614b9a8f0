from __future__ import annotations

import enum
import logging
import threading
from typing import TYPE_CHECKING, Protocol

from .constants import (
    ANNOUNCE_JOINED,
    ANNOUNCE_SAYS,
    DEFAULT_NICK,
    LINE_TERMINATOR,
    REPLY_NO_ROOM,
    REPLY_QUIT,
)

if TYPE_CHECKING:
    from .rooms import Room, RoomRegistry
    from .stats import StatsManager


class Stream(Protocol):
    """Bidirectional byte stream handed over by the acceptor."""

    def readline(self) -> bytes: ...

    def write(self, data: bytes) -> object: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


class SessionState(enum.Enum):
    CONNECTED = "connected"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


class Session:
    """
    Server-side state for one connected client.

    A session owns its stream, display name and current room. Only its own
    loop changes the name and room; other sessions' threads reach it solely
    through ``deliver`` during a room broadcast, so writes are serialized by a
    per-session lock.
    """

    def __init__(
        self,
        identity: str,
        stream: Stream,
        registry: RoomRegistry,
        *,
        name: str = DEFAULT_NICK,
        stats: StatsManager | None = None,
    ) -> None:
        self.identity = identity
        self.stream = stream
        self.registry = registry
        self.stats = stats
        self.name = name
        self.room: str | None = None
        self.state = SessionState.CONNECTED
        self.log = logging.getLogger("telnetchat.session")
        self._write_lock = threading.Lock()
        self._closed = False

    def __repr__(self) -> str:
        return f"Session(identity={self.identity!r}, name={self.name!r}, room={self.room!r})"

    @property
    def closed(self) -> bool:
        return self._closed

    def set_name(self, new_name: str) -> None:
        """Replace the display name. Room membership is untouched.

        Callers pass a non-empty name; the command parser only produces
        NICK with an argument.
        """
        old = self.name
        self.name = new_name
        if self.stats is not None:
            self.stats.inc("nick_changes")
        self.log.info("Nick changed identity=%s old=%r new=%r", self.identity, old, new_name)

    def current_room(self) -> Room | None:
        if self.room is None:
            return None
        return self.registry.get(self.room)

    def join_room(self, room_name: str) -> Room:
        """Move this session into room_name, creating the room if needed.

        The join announcement goes to the room's other members, including when
        re-joining the room the session is already in.
        """
        self.leave_room()

        room = self.registry.get_or_create(room_name)
        room.join(self)
        self.room = room_name
        room.broadcast(self, ANNOUNCE_JOINED.format(name=self.name))

        if self.stats is not None:
            self.stats.inc("joins")
        self.log.info("Joined identity=%s nick=%r room=%r", self.identity, self.name, room_name)
        return room

    def leave_room(self) -> None:
        """Drop membership of the current room, without a departure notice."""
        if self.room is None:
            return
        room = self.registry.get(self.room)
        if room is not None:
            room.leave(self)
        self.room = None

    def say(self, message: str) -> bool:
        """Broadcast message to the current room.

        Without a current room the sender gets a guidance line instead and
        False is returned.
        """
        room = self.current_room()
        if room is None:
            self.deliver(REPLY_NO_ROOM)
            return False

        room.broadcast(self, ANNOUNCE_SAYS.format(name=self.name, message=message))
        if self.stats is not None:
            self.stats.inc("messages")
        return True

    def quit(self) -> None:
        self.leave_room()
        self.deliver(REPLY_QUIT)
        if self.stats is not None:
            self.stats.inc("quits")
        self.log.info("Client left identity=%s nick=%r", self.identity, self.name)
        self.close()

    def deliver(self, text: str) -> bool:
        """Write one line to this session's client.

        Failures are logged and swallowed so a broadcast to other members
        carries on. Returns whether the write went through.
        """
        data = (text + LINE_TERMINATOR).encode("utf-8")
        with self._write_lock:
            if self._closed:
                return False
            try:
                self.stream.write(data)
                self.stream.flush()
            except (OSError, ValueError) as e:
                if self.stats is not None:
                    self.stats.inc("write_errors")
                self.log.warning(
                    "Send failed identity=%s bytes=%s err=%s", self.identity, len(data), e
                )
                return False

        if self.stats is not None:
            self.stats.inc("lines_out")
        return True

    def read_line(self) -> str | None:
        """Block until one full line arrives. Returns None at end of stream.

        OSError from the transport propagates to the caller.
        """
        raw = self.stream.readline()
        if not raw:
            return None
        if self.stats is not None:
            self.stats.inc("lines_in")
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    def close(self) -> None:
        with self._write_lock:
            if self._closed:
                return
            self._closed = True
        self.state = SessionState.DISCONNECTED
        try:
            self.stream.close()
        except OSError as e:
            self.log.debug("Close failed identity=%s err=%s", self.identity, e)
