"""Command interpreter for TelnetChat input lines."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .constants import (
    CMD_JOIN,
    CMD_NICK,
    CMD_QUIT,
    CMD_SAY,
    USAGE_JOIN,
    USAGE_NICK,
    USAGE_SAY,
)


class Action(enum.Enum):
    NICK = "nick"
    JOIN = "join"
    SAY = "say"
    QUIT = "quit"
    USAGE = "usage"
    HELP = "help"


@dataclass(frozen=True)
class Command:
    """One parsed input line.

    ``arg`` holds the re-joined argument for NICK/JOIN/SAY and the usage text
    for USAGE. It is empty for QUIT and HELP.
    """

    action: Action
    arg: str = ""


# command token -> (action, usage reply when the argument is missing)
_WITH_ARG: dict[str, tuple[Action, str]] = {
    CMD_NICK: (Action.NICK, USAGE_NICK),
    CMD_JOIN: (Action.JOIN, USAGE_JOIN),
    CMD_SAY: (Action.SAY, USAGE_SAY),
}


def parse_line(line: str) -> Command:
    """Turn a received line into a Command.

    Never raises: malformed input maps to USAGE or HELP.
    """
    parts = line.split()
    if not parts:
        return Command(Action.HELP)

    cmd, args = parts[0], parts[1:]

    if cmd == CMD_QUIT:
        return Command(Action.QUIT)

    entry = _WITH_ARG.get(cmd)
    if entry is None:
        return Command(Action.HELP)

    action, usage = entry
    if not args:
        return Command(Action.USAGE, usage)

    return Command(action, " ".join(args))
