from __future__ import annotations

import os
import threading
from typing import Optional

import requests

from a2v.errors import DownloadError, JobCancelledError
from a2v.logging_utils import get_logger
from a2v.paths import timestamped_path

log = get_logger(__name__)

CHUNK_SIZE = 64 * 1024


def download_file(url: str, output_dir: str, session: Optional[requests.Session] = None,
                  timeout: float = 300.0, cancel: Optional[threading.Event] = None,
                  prefix: str = "video", ext: str = "mp4") -> str:
    """Stream ``url`` to ``<output_dir>/<prefix>-<ns>.<ext>`` and return the path."""
    if not url:
        raise DownloadError("download url is empty")
    http = session or requests.Session()
    try:
        resp = http.get(url, stream=True, timeout=timeout)
    except requests.exceptions.RequestException as e:
        log.error("download failed", extra={"url": url, "error": str(e)})
        raise DownloadError(f"download failed: {e}") from e

    with resp:
        if resp.status_code >= 400:
            raise DownloadError(f"download error: {resp.text}")
        try:
            output_path = timestamped_path(output_dir, prefix, ext)
        except OSError as e:
            raise DownloadError(f"video not written: {e}") from e
        try:
            with open(output_path, "wb") as f:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if cancel is not None and cancel.is_set():
                        raise JobCancelledError("job cancelled")
                    if chunk:
                        f.write(chunk)
        except JobCancelledError:
            _remove_quietly(output_path)
            raise
        except requests.exceptions.RequestException as e:
            _remove_quietly(output_path)
            raise DownloadError(f"download interrupted: {e}") from e
        except OSError as e:
            _remove_quietly(output_path)
            raise DownloadError(f"video not written: {e}") from e
    log.info("download complete", extra={"url": url, "output": output_path})
    return output_path


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
