"""Statistics tracking and reporting for the chat server."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .rooms import RoomRegistry


class StatsManager:
    """
    Lifetime counters for the chat server.

    Tracks:
    - Connections and disconnects
    - Room joins and nick changes
    - Messages said and lines in/out
    - Usage errors, read errors and write errors
    """

    def __init__(self, registry: RoomRegistry | None = None) -> None:
        self.registry = registry
        self._lock = threading.Lock()

        self.started_wall_time: float | None = None
        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "connections": 0,
            "disconnects": 0,
            "quits": 0,
            "joins": 0,
            "nick_changes": 0,
            "messages": 0,
            "lines_in": 0,
            "lines_out": 0,
            "usage_errors": 0,
            "read_errors": 0,
            "write_errors": 0,
        }

    def set_start_time(self) -> None:
        """Set the start time for uptime calculations."""
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        """Increment a counter by the given delta."""
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + int(delta)

    def get(self, key: str) -> int:
        with self._lock:
            return self._counters.get(key, 0)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def format_stats(self) -> str:
        """Format current statistics as a human-readable string."""
        from . import __version__

        started = self.started_monotonic
        uptime_s = (time.monotonic() - started) if started is not None else 0.0
        c = self.snapshot()

        lines: list[str] = []
        lines.append(f"telnetchat {__version__} stats")
        lines.append(f"uptime_s={uptime_s:.1f}")
        lines.append(
            "clients: connections={} disconnects={} quits={}".format(
                c["connections"], c["disconnects"], c["quits"]
            )
        )

        if self.registry is not None:
            room_stats = self.registry.get_stats()
            lines.append(
                f"rooms={room_stats['rooms_total']} memberships={room_stats['memberships']}"
            )
            if room_stats["top_rooms"]:
                lines.append(
                    "top_rooms="
                    + ", ".join(f"{r}:{n}" for r, n in room_stats["top_rooms"])
                )

        lines.append(
            "events: joins={} nick_changes={} messages={} usage_errors={}".format(
                c["joins"], c["nick_changes"], c["messages"], c["usage_errors"]
            )
        )
        lines.append(
            "io: lines_in={} lines_out={} read_errors={} write_errors={}".format(
                c["lines_in"], c["lines_out"], c["read_errors"], c["write_errors"]
            )
        )

        return "\n".join(lines)
