from __future__ import annotations

import enum
import signal
import subprocess
import threading
from typing import List, Optional

from a2v.config import RecordConfig
from a2v.errors import RecorderStateError, RecordingError
from a2v.logging_utils import get_logger
from a2v.paths import timestamped_path

log = get_logger(__name__)


class RecorderState(enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    FAILED = "failed"


def build_record_args(config: RecordConfig, output_path: str) -> List[str]:
    """ffmpeg arguments for a mono 44.1kHz WAV capture of bounded length."""
    duration = config.duration_seconds if config.duration_seconds > 0 else 10
    return [
        config.ffmpeg_path or "ffmpeg",
        "-y",
        "-f", config.format,
        "-i", config.device,
        "-t", str(duration),
        "-ac", "1",
        "-ar", "44100",
        output_path,
    ]


class Recorder:
    """Owns one ffmpeg capture process for its whole life.

    IDLE -> RECORDING on start(); RECORDING -> STOPPED or FAILED once wait()
    returns. A finished Recorder cannot be started again.
    """

    def __init__(self, config: RecordConfig):
        self.config = config
        self.output_path = ""
        self.state = RecorderState.IDLE
        self._proc: Optional[subprocess.Popen] = None
        self._stopped = False
        self._lock = threading.Lock()

    def start(self) -> str:
        """Spawn the capture process and return the path it will write."""
        with self._lock:
            if self.state is not RecorderState.IDLE:
                raise RecorderStateError(f"recorder cannot start from state {self.state.value}")
            self.output_path = timestamped_path(self.config.output_dir, "recording", "wav")
            args = build_record_args(self.config, self.output_path)
            try:
                self._proc = subprocess.Popen(args, stdin=subprocess.DEVNULL,
                                              stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
            except OSError as e:
                self.state = RecorderState.FAILED
                raise RecordingError(f"ffmpeg recording failed: {e}") from e
            self.state = RecorderState.RECORDING
        log.info("recording started", extra={"output": self.output_path, "device": self.config.device})
        return self.output_path

    def stop(self) -> None:
        """Ask ffmpeg to finish the file; kill it if the signal cannot be sent."""
        with self._lock:
            if self._proc is None or self.state is not RecorderState.RECORDING:
                return
            self._stopped = True
            try:
                self._proc.send_signal(signal.SIGINT)
            except OSError as e:
                log.warning("interrupt failed; killing recorder", extra={"error": str(e)})
                try:
                    self._proc.kill()
                except OSError:
                    pass
                raise RecordingError(f"ffmpeg recording stop failed: {e}") from e
        log.info("recording stop requested", extra={"output": self.output_path})

    def wait(self) -> str:
        """Block until the capture exits and return the recording path.

        A non-zero exit after stop() is the expected interrupt, not a failure.
        """
        if self._proc is None:
            raise RecorderStateError("recorder was never started")
        if self.state is RecorderState.STOPPED:
            return self.output_path
        if self.state is RecorderState.FAILED:
            raise RecorderStateError("recorder already failed")
        output, _ = self._proc.communicate()
        returncode = self._proc.returncode
        with self._lock:
            if returncode != 0 and not self._stopped:
                self.state = RecorderState.FAILED
                text = (output or b"").decode("utf-8", errors="replace").strip()
                log.error("recording failed", extra={"returncode": returncode})
                raise RecordingError(f"ffmpeg recording failed: {text}")
            self.state = RecorderState.STOPPED
        log.info("recording finished", extra={"output": self.output_path, "returncode": returncode})
        return self.output_path
