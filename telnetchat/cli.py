from __future__ import annotations

import argparse
import logging
import sys
import tomllib
from dataclasses import asdict, replace

from .config import ChatRuntimeConfig
from .logging_config import configure_logging
from .service import ChatService


def load_toml(path: str) -> dict:
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def apply_config_data(cfg: ChatRuntimeConfig, data: dict) -> ChatRuntimeConfig:
    server = data.get("server")
    if isinstance(server, dict):
        data = {**data, **server}

    log_table = data.get("logging")
    if isinstance(log_table, dict):
        mapped: dict[str, object] = {}
        for key in ("level", "console", "file", "format", "datefmt"):
            if key in log_table:
                mapped[f"log_{key}"] = log_table.get(key)
        data = {**data, **mapped}

    allowed = set(asdict(cfg).keys())
    # Where the config came from is decided by the command line only.
    allowed.discard("config_path")
    updates = {k: v for k, v in data.items() if k in allowed}

    if "port" in updates:
        updates["port"] = int(updates["port"])
    for int_key in ("listen_backlog", "max_line_bytes"):
        if int_key in updates:
            updates[int_key] = int(updates[int_key])
    if "log_console" in updates:
        updates["log_console"] = bool(updates["log_console"])
    for optional in ("log_file", "log_datefmt"):
        if optional in updates and updates[optional] == "":
            updates[optional] = None
    return replace(cfg, **updates) if updates else cfg


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="telnetchat", description="Run a multi-room line-based chat server"
    )

    p.add_argument("--config", default=None, help="Path to a TOML config file")
    p.add_argument("--host", default=None, help="Address to listen on (default: 0.0.0.0)")
    p.add_argument("--port", type=int, default=None, help="TCP port to listen on (default: 8888)")

    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def build_config(args: argparse.Namespace) -> ChatRuntimeConfig:
    cfg = ChatRuntimeConfig()

    if args.config:
        cfg = apply_config_data(cfg, load_toml(str(args.config)))
        cfg = replace(cfg, config_path=str(args.config))

    if args.host is not None:
        cfg = replace(cfg, host=str(args.host))
    if args.port is not None:
        cfg = replace(cfg, port=int(args.port))
    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)
    return cfg


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    try:
        cfg = build_config(args)
    except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError) as e:
        print(f"telnetchat: cannot load config {args.config}: {e}", file=sys.stderr)
        raise SystemExit(2)

    try:
        configure_logging(cfg)
    except (OSError, ValueError) as e:
        print(f"telnetchat: cannot set up logging: {e}", file=sys.stderr)
        raise SystemExit(2)

    svc = ChatService(cfg)
    try:
        svc.start()
    except OSError as e:
        logging.getLogger("telnetchat.service").error(
            "Unable to start chat server on %s:%s: %s", cfg.host, cfg.port, e
        )
        raise SystemExit(1)
    svc.run_forever()


if __name__ == "__main__":
    main()
