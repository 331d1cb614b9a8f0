"""Room membership and broadcast for TelnetChat.

This module holds the two pieces of state shared between session threads:
- ``Room``: a named member set keyed by client identity
- ``RoomRegistry``: the lazily populated room name -> Room map

Each Room guards its member set with its own lock. The registry guards
create-or-fetch with a separate lock. Neither lock is held while writing to a
client.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .session import Session


class Room:
    """A named broadcast group."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.log = logging.getLogger("telnetchat.rooms")
        self._lock = threading.Lock()
        self._members: dict[str, Session] = {}

    def join(self, session: Session) -> None:
        """Add a session, keyed by its identity."""
        with self._lock:
            self._members[session.identity] = session

    def leave(self, session: Session) -> None:
        """Remove a session if present."""
        with self._lock:
            self._members.pop(session.identity, None)

    def broadcast(self, from_session: Session, text: str) -> int:
        """Deliver text to every member except the sender.

        Returns the number of recipients a delivery was attempted for.
        """
        with self._lock:
            recipients = [
                s for ident, s in self._members.items() if ident != from_session.identity
            ]

        for member in recipients:
            member.deliver(text)

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "Broadcast room=%r from=%s recipients=%d",
                self.name,
                from_session.identity,
                len(recipients),
            )
        return len(recipients)

    def members(self) -> list[Session]:
        with self._lock:
            return list(self._members.values())

    def identities(self) -> set[str]:
        with self._lock:
            return set(self._members.keys())

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._members

    def __len__(self) -> int:
        with self._lock:
            return len(self._members)

    def __repr__(self) -> str:
        return f"Room(name={self.name!r}, members={len(self)})"


class RoomRegistry:
    """Single source of truth for which rooms exist.

    Rooms are created on first use and kept for the life of the registry,
    including while empty.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("telnetchat.rooms")
        self._lock = threading.Lock()
        self._rooms: dict[str, Room] = {}

    def get_or_create(self, name: str) -> Room:
        """Return the Room for name, creating and registering it if absent."""
        with self._lock:
            room = self._rooms.get(name)
            if room is None:
                room = Room(name)
                self._rooms[name] = room
                self.log.info("Room created room=%r", name)
            return room

    def get(self, name: str) -> Room | None:
        with self._lock:
            return self._rooms.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._rooms)

    def clear_all(self) -> None:
        """Drop every room. Called during service shutdown."""
        with self._lock:
            self._rooms.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def get_stats(self) -> dict[str, Any]:
        """Get room statistics for service stats."""
        with self._lock:
            rooms = list(self._rooms.values())

        sizes = [(r.name, len(r)) for r in rooms]
        top_rooms = sorted(sizes, key=lambda x: (-x[1], x[0]))[:5]
        return {
            "rooms_total": len(sizes),
            "memberships": sum(n for _, n in sizes),
            "top_rooms": top_rooms,
        }
