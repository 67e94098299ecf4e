"""Command-line entry point that starts the conversion service."""

from __future__ import annotations

import argparse
import os
import sys

from .config import load_config
from .server import create_server


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pandocd", description="document conversion service")
    parser.add_argument("--version", action="version", version="v19.99.0")
    commands = parser.add_subparsers(dest="command")
    run = commands.add_parser("run", aliases=["do"], help="start the service")
    run.add_argument("-c", "--config", default="app.conf", help="config filename")
    run.add_argument("--cwd", default="app.conf", help="working directory")
    run.add_argument("args", nargs="*")
    return parser


def _run(ns: argparse.Namespace) -> int:
    print(":wave: over here, eh")
    if ns.args and ns.args[0] == "cwd":
        print(os.getcwd())
        return 0
    try:
        server = create_server(load_config(ns.config))
        server.run()
    except Exception as exc:
        print(f"[pandocd]: {exc}", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _parser()
    ns = parser.parse_args(argv)
    if ns.command is None:
        parser.print_help()
        return 0
    print("brace for impact")
    try:
        return _run(ns)
    finally:
        print("did we lose anyone?")


if __name__ == "__main__":
    sys.exit(main())