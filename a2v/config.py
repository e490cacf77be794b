from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from a2v.logging_utils import get_logger

log = get_logger(__name__)

DEFAULT_PRESET_NOTES: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "hook": ("hook moment", "fast impact", "center focus"),
    "canvas": ("seamless loop", "subtle motion", "ambient visuals"),
    "highlight": ("dramatic highlight", "cinematic focus", "story beat"),
})
DEFAULT_STYLE_OPTIONS: Tuple[str, ...] = ("cinematic", "anime", "cyberpunk", "surreal", "minimalist")
DEFAULT_ASPECT_OPTIONS: Tuple[str, ...] = ("9:16", "1:1")


@dataclass(frozen=True)
class PromptTables:
    """Lookup tables used to turn job choices into prompt fragments."""

    base_phrase: str = "cinematic music video visuals"
    preset_notes: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: DEFAULT_PRESET_NOTES)
    style_options: Tuple[str, ...] = DEFAULT_STYLE_OPTIONS
    aspect_options: Tuple[str, ...] = DEFAULT_ASPECT_OPTIONS

    def __post_init__(self) -> None:
        # Copy caller dicts so later mutation cannot leak into a running job.
        frozen = {k.lower(): tuple(v) for k, v in self.preset_notes.items()}
        object.__setattr__(self, "preset_notes", MappingProxyType(frozen))
        object.__setattr__(self, "style_options", tuple(self.style_options))
        object.__setattr__(self, "aspect_options", tuple(self.aspect_options))

    def notes_for(self, preset: str) -> Tuple[str, ...]:
        return self.preset_notes.get((preset or "").strip().lower(), ())


@dataclass(frozen=True)
class TranscribeConfig:
    enabled: bool = False
    docker_path: str = "docker"
    docker_image: str = "ghcr.io/ggml-org/whisper.cpp:main"
    model: str = "small"
    model_dir: str = "./models"
    auto_download: bool = True


@dataclass(frozen=True)
class RecordConfig:
    ffmpeg_path: str = "ffmpeg"
    format: str = "alsa"
    device: str = "default"
    output_dir: str = "./outputs"
    duration_seconds: int = 15


@dataclass(frozen=True)
class Config:
    elevenlabs_api_key: str = ""
    elevenlabs_base_url: str = "https://api.elevenlabs.io"
    elevenlabs_enhance_path: str = "/v1/audio-isolation"
    replicate_api_token: str = ""
    replicate_base_url: str = "https://api.replicate.com/v1"
    replicate_model: str = "minimax/video-01"
    replicate_prefer_wait: bool = True
    generation_backend: str = "prediction"
    ltx2_base_url: str = ""
    ltx2_generate_path: str = "/generate"
    ltx2_status_path: str = "/status/{job_id}"
    ltx2_download_path: str = "/download/{job_id}"
    transcribe: TranscribeConfig = field(default_factory=TranscribeConfig)
    output_dir: str = "./outputs"
    ffmpeg_path: str = "ffmpeg"
    record_format: str = "alsa"
    record_device: str = "default"
    record_duration_seconds: int = 15
    job_poll_interval: float = 4.0
    http_timeout: float = 300.0

    def record_config(self, device: Optional[str] = None, duration_seconds: Optional[int] = None) -> RecordConfig:
        return RecordConfig(
            ffmpeg_path=self.ffmpeg_path,
            format=self.record_format,
            device=device or self.record_device,
            output_dir=self.output_dir,
            duration_seconds=duration_seconds or self.record_duration_seconds,
        )


_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}
_TRUE = {"1", "t", "true", "yes", "y", "on"}
_FALSE = {"0", "f", "false", "no", "n", "off"}


def parse_duration(value: str) -> Optional[float]:
    """Parse ``4``, ``4s``, ``500ms``, ``2m`` or ``1h`` into seconds."""
    m = _DURATION_RE.match(value or "")
    if not m:
        return None
    return float(m.group(1)) * _DURATION_UNITS[m.group(2)]


def _get(env: Mapping[str, str], key: str, fallback: str) -> str:
    return env.get(key) or fallback


def _get_bool(env: Mapping[str, str], key: str, fallback: bool) -> bool:
    value = (env.get(key) or "").strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    if value:
        log.warning("invalid boolean setting; using default", extra={"key": key, "value": value})
    return fallback


def _get_int(env: Mapping[str, str], key: str, fallback: int) -> int:
    value = env.get(key)
    if not value:
        return fallback
    try:
        return int(value)
    except ValueError:
        log.warning("invalid integer setting; using default", extra={"key": key, "value": value})
        return fallback


def _get_duration(env: Mapping[str, str], key: str, fallback: float) -> float:
    value = env.get(key)
    if not value:
        return fallback
    parsed = parse_duration(value)
    if parsed is None:
        log.warning("invalid duration setting; using default", extra={"key": key, "value": value})
        return fallback
    return parsed


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build a Config from environment variables, falling back to defaults."""
    env = os.environ if environ is None else environ
    return Config(
        elevenlabs_api_key=_get(env, "ELEVENLABS_API_KEY", ""),
        elevenlabs_base_url=_get(env, "ELEVENLABS_BASE_URL", "https://api.elevenlabs.io"),
        elevenlabs_enhance_path=_get(env, "ELEVENLABS_ENHANCE_PATH", "/v1/audio-isolation"),
        replicate_api_token=_get(env, "REPLICATE_API_TOKEN", ""),
        replicate_base_url=_get(env, "REPLICATE_BASE_URL", "https://api.replicate.com/v1"),
        replicate_model=_get(env, "REPLICATE_MODEL", "minimax/video-01"),
        replicate_prefer_wait=_get_bool(env, "REPLICATE_PREFER_WAIT", True),
        generation_backend=_get(env, "GENERATION_BACKEND", "prediction").strip().lower(),
        ltx2_base_url=_get(env, "LTX2_BASE_URL", ""),
        ltx2_generate_path=_get(env, "LTX2_GENERATE_PATH", "/generate"),
        ltx2_status_path=_get(env, "LTX2_STATUS_PATH", "/status/{job_id}"),
        ltx2_download_path=_get(env, "LTX2_DOWNLOAD_PATH", "/download/{job_id}"),
        transcribe=TranscribeConfig(
            enabled=_get_bool(env, "TRANSCRIBE_ENABLED", True),
            docker_path=_get(env, "WHISPER_DOCKER_PATH", "docker"),
            docker_image=_get(env, "WHISPER_DOCKER_IMAGE", "ghcr.io/ggml-org/whisper.cpp:main"),
            model=_get(env, "WHISPER_MODEL", "small"),
            model_dir=_get(env, "WHISPER_MODEL_DIR", "./models"),
            auto_download=_get_bool(env, "WHISPER_AUTO_DOWNLOAD", True),
        ),
        output_dir=_get(env, "OUTPUT_DIR", "./outputs"),
        ffmpeg_path=_get(env, "FFMPEG_PATH", "ffmpeg"),
        record_format=_get(env, "AUDIO_RECORD_FORMAT", "alsa"),
        record_device=_get(env, "AUDIO_RECORD_DEVICE", "default"),
        record_duration_seconds=_get_int(env, "AUDIO_RECORD_SECONDS", 15),
        job_poll_interval=_get_duration(env, "JOB_POLL_INTERVAL", 4.0),
        http_timeout=_get_duration(env, "HTTP_TIMEOUT", 300.0),
    )
