from __future__ import annotations

import os
import threading
from typing import Optional

import requests

from a2v.errors import EnhancementError, JobCancelledError
from a2v.logging_utils import get_logger
from a2v.multipart import StreamingMultipartBody, post_multipart
from a2v.paths import timestamped_path

log = get_logger(__name__)


class EnhanceClient:
    """Audio isolation / enhancement over HTTP (ElevenLabs-style API)."""

    def __init__(self, api_key: str, base_url: str = "https://api.elevenlabs.io",
                 enhance_path: str = "/v1/audio-isolation", timeout: float = 300.0,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.enhance_path = enhance_path
        self.timeout = timeout
        self.session = session or requests.Session()

    def enhance_audio(self, input_path: str, output_dir: str,
                      cancel: Optional[threading.Event] = None) -> str:
        """Upload ``input_path`` and write the enhanced audio to ``enhanced-<ns>.wav``.

        Without an API key the input path is returned unchanged.
        """
        if not self.api_key:
            log.info("enhancement skipped: no api key")
            return input_path

        url = self.base_url + self.enhance_path
        body = StreamingMultipartBody("audio", input_path, cancel=cancel)
        log.debug("enhance POST", extra={"url": url, "file": input_path})
        resp = post_multipart(self.session, url, body, headers={"xi-api-key": self.api_key},
                              timeout=self.timeout, error_cls=EnhancementError)
        with resp:
            if resp.status_code >= 400:
                log.error("enhance failed", extra={"status": resp.status_code})
                raise EnhancementError(f"enhancement error: {resp.text}")
            try:
                output_path = timestamped_path(output_dir, "enhanced", "wav")
            except OSError as e:
                raise EnhancementError(f"enhanced audio not written: {e}") from e
            try:
                with open(output_path, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=64 * 1024):
                        if cancel is not None and cancel.is_set():
                            raise JobCancelledError("job cancelled")
                        f.write(chunk)
            except JobCancelledError:
                _remove_quietly(output_path)
                raise
            except requests.exceptions.RequestException as e:
                _remove_quietly(output_path)
                raise EnhancementError(f"enhancement response interrupted: {e}") from e
            except OSError as e:
                _remove_quietly(output_path)
                raise EnhancementError(f"enhanced audio not written: {e}") from e
        log.info("enhanced audio written", extra={"output": output_path})
        return output_path


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
