import re
import threading
import time

from telnetchat.constants import DEFAULT_NICK, REPLY_NO_ROOM, REPLY_QUIT
from telnetchat.rooms import RoomRegistry
from telnetchat.session import Session, SessionState


def _rooms_containing(registry: RoomRegistry, identity: str) -> list[str]:
    return [name for name in registry.names() if identity in registry.get(name)]


def test_new_session_defaults(make_session) -> None:
    s, _ = make_session()
    assert s.name == DEFAULT_NICK == "anonymous"
    assert s.room is None
    assert s.state is SessionState.CONNECTED


def test_set_name_keeps_membership(registry: RoomRegistry, make_session) -> None:
    s, _ = make_session()
    s.join_room("lobby")
    s.set_name("Alice")
    assert s.name == "Alice"
    assert s.room == "lobby"
    assert s.identity in registry.get("lobby")


def test_set_name_always_succeeds(registry: RoomRegistry, make_session) -> None:
    s, out = make_session()
    s.join_room("lobby")
    for name in ("Bob", "Mary Ann", "Zoë", "anonymous"):
        assert s.set_name(name) is None
        assert s.name == name
    assert s.room == "lobby"
    assert out.lines() == []


def test_join_announces_to_others_only(make_session) -> None:
    a, a_out = make_session()
    b, b_out = make_session()
    a.join_room("lobby")
    b.set_name("Bob")
    b.join_room("lobby")

    assert a_out.lines() == ["> Bob joined the room"]
    assert b_out.lines() == []


def test_join_second_room_moves_membership(registry: RoomRegistry, make_session) -> None:
    s, _ = make_session()
    s.join_room("one")
    s.join_room("two")

    assert s.room == "two"
    assert s.identity not in registry.get("one")
    assert s.identity in registry.get("two")
    assert _rooms_containing(registry, s.identity) == ["two"]


def test_rejoin_same_room_keeps_single_membership(registry: RoomRegistry, make_session) -> None:
    a, a_out = make_session()
    b, _ = make_session()
    a.join_room("lobby")
    b.join_room("lobby")
    b.join_room("lobby")

    assert len(registry.get("lobby")) == 2
    assert registry.get("lobby").identities() == {a.identity, b.identity}
    assert a_out.lines() == ["> anonymous joined the room"] * 2


def test_say_without_room_replies_to_sender_only(registry: RoomRegistry, make_session) -> None:
    a, a_out = make_session()
    other, other_out = make_session()
    other.join_room("lobby")

    assert a.say("hi") is False
    assert a_out.lines() == [REPLY_NO_ROOM]
    assert other_out.lines() == []


def test_say_broadcasts_to_other_members(make_session) -> None:
    a, a_out = make_session()
    b, b_out = make_session()
    c, c_out = make_session()
    a.set_name("A")
    for s in (a, b, c):
        s.join_room("lobby")
    for out in (a_out, b_out, c_out):
        out.clear()

    assert a.say("hi") is True
    assert a_out.lines() == []
    assert b_out.lines() == ["> A says: hi"]
    assert c_out.lines() == ["> A says: hi"]


def test_say_does_not_reach_other_rooms(make_session) -> None:
    a, _ = make_session()
    b, b_out = make_session()
    a.join_room("lobby")
    b.join_room("elsewhere")
    a.say("hi")
    assert b_out.lines() == []


def test_quit_leaves_silently_and_closes(registry: RoomRegistry, make_session) -> None:
    a, a_out = make_session()
    b, b_out = make_session()
    b.join_room("lobby")
    a.join_room("lobby")
    b_out.clear()

    a.quit()

    assert a_out.lines()[-1] == REPLY_QUIT
    assert a_out.closed
    assert a.closed
    assert a.state is SessionState.DISCONNECTED
    assert a.identity not in registry.get("lobby")
    assert b_out.lines() == []


def test_deliver_after_close_is_dropped(make_session) -> None:
    a, a_out = make_session()
    a.close()
    a.close()
    assert a.deliver("late") is False
    assert a_out.lines() == []


def test_deliver_failure_is_swallowed(make_session, stats) -> None:
    a, _ = make_session(fail_writes=True)
    assert a.deliver("hello") is False
    assert stats.get("write_errors") == 1


def test_read_line_strips_line_endings(make_session) -> None:
    a, stream = make_session()
    stream._input = [b"/say hi\r\n", b"plain\n"]
    assert a.read_line() == "/say hi"
    assert a.read_line() == "plain"
    assert a.read_line() is None


def test_membership_invariant_over_many_moves(registry: RoomRegistry, make_session) -> None:
    s, _ = make_session()
    for name in ["a", "b", "a", "c", "c", "b"]:
        s.join_room(name)
        assert _rooms_containing(registry, s.identity) == [s.room]
    s.leave_room()
    assert s.room is None
    assert _rooms_containing(registry, s.identity) == []


class ByteAtATimeStream:
    """Writes each byte separately, yielding the GIL in between."""

    def __init__(self) -> None:
        self.output = bytearray()

    def readline(self) -> bytes:
        return b""

    def write(self, data: bytes) -> int:
        for i in range(len(data)):
            self.output += data[i : i + 1]
            time.sleep(0)
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


def test_concurrent_deliver_keeps_lines_whole(registry: RoomRegistry) -> None:
    stream = ByteAtATimeStream()
    target = Session("127.0.0.1:50000", stream, registry)
    writers, per_writer = 8, 50
    barrier = threading.Barrier(writers)

    def writer(n: int) -> None:
        barrier.wait()
        for i in range(per_writer):
            target.deliver(f"> w{n} says: line {i} of {per_writer}")

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(writers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    lines = stream.output.decode("utf-8").splitlines()
    assert len(lines) == writers * per_writer
    pattern = re.compile(rf"> w(\d) says: line (\d+) of {per_writer}")
    seen = set()
    for line in lines:
        m = pattern.fullmatch(line)
        assert m is not None, line
        seen.add((int(m.group(1)), int(m.group(2))))
    assert len(seen) == writers * per_writer
