from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

from a2v.errors import OutputWriteError
from a2v.logging_utils import get_logger
from a2v.paths import timestamped_path
from a2v.types import Analysis, JobInput

log = get_logger(__name__)


def build_metadata(job: JobInput, job_id: str, video_path: str, transcript: str,
                   transcript_path: str, analysis: Analysis) -> Dict[str, Any]:
    return {
        "job_id": job_id,
        "audio_path": job.audio_path,
        "lyrics": job.lyrics,
        "preset": job.preset,
        "style_preset": job.style_preset,
        "aspect_ratio": job.aspect_ratio,
        "duration_seconds": job.duration_seconds,
        "video_path": video_path,
        "transcript": transcript,
        "transcript_path": transcript_path,
        "audio_bpm": analysis.bpm,
        "audio_mean_db": analysis.mean_volume,
        "audio_max_db": analysis.max_volume,
        "audio_duration": analysis.duration,
        "created_at": datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds"),
    }


def write_metadata(output_dir: str, record: Dict[str, Any]) -> str:
    """Write ``record`` to ``metadata-<ns>.json`` and return the path."""
    try:
        path = timestamped_path(output_dir, "metadata", "json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(record, f, ensure_ascii=False, indent=2)
    except OSError as e:
        log.error("metadata write failed", extra={"output_dir": output_dir, "error": str(e)})
        raise OutputWriteError(f"metadata write failed: {e}") from e
    log.info("metadata written", extra={"file": path, "job_id": record.get("job_id")})
    return path


def read_metadata(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
