from __future__ import annotations

import subprocess
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence, Type

from a2v.errors import JobCancelledError, SubprocessError
from a2v.logging_utils import get_logger

log = get_logger(__name__)

_POLL_SECONDS = 0.2


@dataclass
class CommandResult:
    args: List[str]
    returncode: int
    output: str


def run_command(args: Sequence[str], cancel: Optional[threading.Event] = None,
                error_cls: Type[SubprocessError] = SubprocessError) -> CommandResult:
    """Run a command to completion, capturing stdout and stderr together.

    The child is killed and JobCancelledError raised if ``cancel`` fires
    while waiting. A missing executable raises ``error_cls``.
    """
    args = [str(a) for a in args]
    log.debug("run command", extra={"cmd": args[0], "argc": len(args)})
    try:
        proc = subprocess.Popen(args, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE,
                                stderr=subprocess.STDOUT)
    except OSError as e:
        raise error_cls(f"{args[0]} could not be started: {e}") from e

    chunks: List[bytes] = []
    while True:
        if cancel is not None and cancel.is_set():
            proc.kill()
            proc.communicate()
            log.info("command cancelled", extra={"cmd": args[0]})
            raise JobCancelledError("job cancelled")
        try:
            out, _ = proc.communicate(timeout=_POLL_SECONDS)
        except subprocess.TimeoutExpired:
            continue
        if out:
            chunks.append(out)
        break

    output = b"".join(chunks).decode("utf-8", errors="replace")
    return CommandResult(args=args, returncode=proc.returncode, output=output)


def check_command(args: Sequence[str], label: str, cancel: Optional[threading.Event] = None,
                  error_cls: Type[SubprocessError] = SubprocessError) -> str:
    """Run a command and raise ``error_cls`` with its output on non-zero exit."""
    result = run_command(args, cancel=cancel, error_cls=error_cls)
    if result.returncode != 0:
        log.error(f"{label} failed", extra={"returncode": result.returncode})
        raise error_cls(f"{label} failed: {result.output.strip()}")
    return result.output
