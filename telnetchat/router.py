from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .commands import Action, parse_line
from .constants import HELP_TEXT, REPLY_JOIN, REPLY_NICK, WELCOME_BANNER
from .session import SessionState

if TYPE_CHECKING:
    from .session import Session
    from .stats import StatsManager


class Dispatcher:
    """
    Runs the per-session control loop.

    This class is responsible for:
    - Greeting a newly connected client
    - Reading one line at a time and interpreting it
    - Executing the resulting action against the session and its room
    - Ending the loop on /quit or when the transport goes away
    """

    def __init__(
        self, *, server_name: str = "TelnetChat", stats: StatsManager | None = None
    ) -> None:
        self.server_name = server_name
        self.stats = stats
        self.log = logging.getLogger("telnetchat.router")

    def welcome(self, session: Session) -> None:
        banner = WELCOME_BANNER.format(server=self.server_name)
        session.deliver(banner + "\n" + HELP_TEXT)

    def run(self, session: Session) -> None:
        """Serve session until it quits or its transport fails."""
        self.welcome(session)

        while session.state is not SessionState.DISCONNECTED:
            try:
                line = session.read_line()
            except (OSError, ValueError) as e:
                if self.stats is not None:
                    self.stats.inc("read_errors")
                self.log.info("Unable to read client input identity=%s err=%s", session.identity, e)
                self._drop(session)
                return

            if line is None:
                self.log.info("Client disconnected identity=%s", session.identity)
                self._drop(session)
                return

            if session.state is SessionState.CONNECTED:
                session.state = SessionState.ACTIVE

            if not self.dispatch(session, line):
                return

    def dispatch(self, session: Session, line: str) -> bool:
        """Execute one input line. Returns False once the session has ended."""
        cmd = parse_line(line)

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "RX identity=%s action=%s arg_len=%d",
                session.identity,
                cmd.action.value,
                len(cmd.arg),
            )

        if cmd.action is Action.NICK:
            session.set_name(cmd.arg)
            session.deliver(REPLY_NICK.format(name=session.name))
        elif cmd.action is Action.JOIN:
            session.join_room(cmd.arg)
            session.deliver(REPLY_JOIN.format(room=cmd.arg))
        elif cmd.action is Action.SAY:
            session.say(cmd.arg)
        elif cmd.action is Action.QUIT:
            session.quit()
            return False
        elif cmd.action is Action.USAGE:
            if self.stats is not None:
                self.stats.inc("usage_errors")
            session.deliver(cmd.arg)
        else:
            session.deliver(HELP_TEXT)

        return True

    def _drop(self, session: Session) -> None:
        session.leave_room()
        session.close()
