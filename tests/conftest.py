from __future__ import annotations

import pytest

from telnetchat.rooms import RoomRegistry
from telnetchat.session import Session
from telnetchat.stats import StatsManager


class FakeStream:
    """In-memory stream: scripted input lines, captured output."""

    def __init__(self, lines: list[str] | None = None, *, fail_writes: bool = False) -> None:
        self._input = [(line + "\n").encode("utf-8") for line in (lines or [])]
        self.output = bytearray()
        self.fail_writes = fail_writes
        self.closed = False

    def readline(self) -> bytes:
        if self.closed or not self._input:
            return b""
        return self._input.pop(0)

    def write(self, data: bytes) -> int:
        if self.fail_writes:
            raise BrokenPipeError("peer went away")
        if self.closed:
            raise ValueError("write to closed file")
        self.output += data
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    def text(self) -> str:
        return self.output.decode("utf-8")

    def lines(self) -> list[str]:
        return self.text().splitlines()

    def clear(self) -> None:
        self.output.clear()


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def stats(registry: RoomRegistry) -> StatsManager:
    return StatsManager(registry)


@pytest.fixture
def make_session(registry: RoomRegistry, stats: StatsManager):
    counter = iter(range(1, 10_000))

    def _make(
        lines: list[str] | None = None, *, fail_writes: bool = False
    ) -> tuple[Session, FakeStream]:
        stream = FakeStream(lines, fail_writes=fail_writes)
        identity = f"127.0.0.1:{40000 + next(counter)}"
        return Session(identity, stream, registry, stats=stats), stream

    return _make
