from __future__ import annotations

from dataclasses import dataclass

from .constants import DEFAULT_HOST, DEFAULT_NICK, DEFAULT_PORT


@dataclass(frozen=True)
class ChatRuntimeConfig:
    config_path: str | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    listen_backlog: int = 16
    # Longer input lines are cut to this many bytes; the rest is discarded.
    max_line_bytes: int = 4096
    server_name: str = "TelnetChat"
    default_nick: str = DEFAULT_NICK
    log_level: str = "INFO"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None
