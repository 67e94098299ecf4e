"""Running external programs with a deadline."""

from __future__ import annotations

import os
import signal
import subprocess


class CommandError(Exception):
    """Raised when a program cannot start, fails or runs out of time."""


def _kill(proc: subprocess.Popen) -> None:
    if hasattr(os, "killpg"):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except OSError:
            pass
    proc.kill()


def run_command(timeout: float, name: str, *args: str) -> bytes:
    """Run ``name`` with ``args`` in its own process group and return its stdout.

    Standard input is closed. A non-zero exit raises CommandError carrying the
    program's stderr; exceeding ``timeout`` seconds kills it.
    """
    try:
        proc = subprocess.Popen(
            [name, *args],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as exc:
        raise CommandError(str(exc)) from exc

    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill(proc)
        proc.communicate()
        raise CommandError("execute timeout") from None

    if proc.returncode != 0:
        raise CommandError(stderr.decode("utf-8", errors="replace"))
    return stdout