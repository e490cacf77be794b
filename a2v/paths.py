from __future__ import annotations

import os
import threading
import time

_lock = threading.Lock()
_last_ns = 0


def unique_ns() -> int:
    """Wall-clock nanoseconds, strictly increasing within this process.

    Only used to keep generated filenames apart; two processes writing to
    the same directory can still collide in theory.
    """
    global _last_ns
    with _lock:
        now = time.time_ns()
        if now <= _last_ns:
            now = _last_ns + 1
        _last_ns = now
        return now


def timestamped_path(output_dir: str, prefix: str, ext: str) -> str:
    """Return ``<output_dir>/<prefix>-<ns>.<ext>``, creating the directory."""
    os.makedirs(output_dir, exist_ok=True)
    return os.path.join(output_dir, f"{prefix}-{unique_ns()}.{ext}")
