from __future__ import annotations

import threading
from typing import Optional

from a2v.errors import FFmpegError
from a2v.logging_utils import get_logger
from a2v.paths import timestamped_path
from a2v.process import check_command

log = get_logger(__name__)


def mux_audio(video_path: str, audio_path: str, output_dir: str, ffmpeg_path: str = "ffmpeg",
              cancel: Optional[threading.Event] = None) -> str:
    """Put ``audio_path`` under ``video_path`` and write ``final-<ns>.mp4``.

    Video is stream-copied, audio re-encoded to AAC, and the output stops
    at the end of the shorter stream.
    """
    output_path = timestamped_path(output_dir, "final", "mp4")
    check_command(
        [
            ffmpeg_path or "ffmpeg",
            "-y",
            "-i", video_path,
            "-i", audio_path,
            "-c:v", "copy",
            "-c:a", "aac",
            "-shortest",
            output_path,
        ],
        label="ffmpeg mux", cancel=cancel, error_cls=FFmpegError,
    )
    log.info("muxed video written", extra={"output": output_path})
    return output_path
