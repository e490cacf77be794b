from __future__ import annotations

import os
import re
import threading
from typing import Optional

from a2v.errors import AudioNotFoundError, AudioValidationError, FFmpegError
from a2v.logging_utils import get_logger
from a2v.process import check_command, run_command
from a2v.types import Analysis

log = get_logger(__name__)

_DURATION_RE = re.compile(r"Duration: (\d{2}):(\d{2}):(\d{2}\.\d+)")


def validate_audio_path(path: str) -> None:
    """Raise unless ``path`` names an existing regular file."""
    if not path or not os.path.exists(path):
        raise AudioNotFoundError(f"audio file not found: {path}")
    if os.path.isdir(path):
        raise AudioValidationError(f"audio path is a directory: {path}")
    if not os.path.isfile(path):
        raise AudioValidationError(f"audio path is not a regular file: {path}")


def parse_ffmpeg_value(output: str, prefix: str, suffix: str) -> float:
    """Return the float between ``prefix`` and ``suffix``, or 0.0 if absent."""
    idx = output.find(prefix)
    if idx == -1:
        return 0.0
    rest = output[idx + len(prefix):]
    end = rest.find(suffix)
    if end == -1:
        return 0.0
    try:
        return float(rest[:end].strip())
    except ValueError:
        return 0.0


def parse_duration_from_log(output: str) -> float:
    m = _DURATION_RE.search(output)
    if not m:
        return 0.0
    hours, minutes, seconds = (float(g) for g in m.groups())
    return hours * 3600 + minutes * 60 + seconds


def parse_bpm(output: str) -> float:
    """Average every positive ``BPM: <float>`` reading in the log."""
    values = []
    for line in output.splitlines():
        idx = line.find("BPM: ")
        if idx == -1:
            continue
        try:
            value = float(line[idx + 5:].strip())
        except ValueError:
            continue
        if value > 0:
            values.append(value)
    if not values:
        return 0.0
    return sum(values) / len(values)


def analyze_audio(input_path: str, ffmpeg_path: str = "ffmpeg",
                  cancel: Optional[threading.Event] = None) -> Analysis:
    """Measure loudness, duration and tempo of ``input_path`` with ffmpeg filters.

    The loudness pass must succeed. The tempo pass is best effort: if the
    ``bpm`` filter is unavailable or fails, tempo is reported as 0.
    """
    ffmpeg_path = ffmpeg_path or "ffmpeg"
    vol_log = check_command(
        [ffmpeg_path, "-i", input_path, "-filter:a", "volumedetect", "-f", "null", os.devnull],
        label="volume analysis", cancel=cancel, error_cls=FFmpegError,
    )
    mean_volume = parse_ffmpeg_value(vol_log, "mean_volume: ", " dB")
    max_volume = parse_ffmpeg_value(vol_log, "max_volume: ", " dB")
    duration = parse_duration_from_log(vol_log)

    bpm = 0.0
    try:
        bpm_run = run_command(
            [ffmpeg_path, "-i", input_path, "-filter:a", "bpm", "-f", "null", os.devnull],
            cancel=cancel, error_cls=FFmpegError,
        )
    except FFmpegError as e:
        log.warning("tempo analysis unavailable", extra={"error": str(e)})
    else:
        if bpm_run.returncode == 0:
            bpm = parse_bpm(bpm_run.output)
        else:
            log.warning("tempo analysis failed", extra={"returncode": bpm_run.returncode})

    analysis = Analysis(bpm=bpm, mean_volume=mean_volume, max_volume=max_volume, duration=duration)
    log.info("audio analyzed", extra={
        "bpm": analysis.bpm, "mean_db": analysis.mean_volume,
        "max_db": analysis.max_volume, "duration": analysis.duration,
    })
    return analysis
