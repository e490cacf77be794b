from __future__ import annotations

import os
import shutil
import threading
from typing import Optional, Tuple

from a2v.config import TranscribeConfig
from a2v.errors import TranscriptionError
from a2v.logging_utils import get_logger
from a2v.paths import timestamped_path, unique_ns
from a2v.process import check_command

log = get_logger(__name__)


def model_path(config: TranscribeConfig) -> str:
    return os.path.join(os.path.abspath(config.model_dir), f"ggml-{config.model}.bin")


def download_model(config: TranscribeConfig, cancel: Optional[threading.Event] = None) -> None:
    model_dir = os.path.abspath(config.model_dir)
    try:
        os.makedirs(model_dir, exist_ok=True)
    except OSError as e:
        raise TranscriptionError(f"whisper model dir not created: {e}") from e
    log.info("downloading whisper model", extra={"model": config.model, "model_dir": model_dir})
    check_command(
        [
            config.docker_path, "run", "--rm",
            "-v", f"{model_dir}:/models",
            config.docker_image,
            "./models/download-ggml-model.sh", config.model,
        ],
        label="whisper model download", cancel=cancel, error_cls=TranscriptionError,
    )


def transcribe(config: TranscribeConfig, audio_path: str, output_dir: str,
               cancel: Optional[threading.Event] = None) -> Tuple[str, str]:
    """Run whisper.cpp in a container and return ``(text, transcript_path)``.

    Returns ``("", "")`` when transcription is disabled.
    """
    if not config.enabled:
        return "", ""

    path = model_path(config)
    if not os.path.exists(path):
        if not config.auto_download:
            raise TranscriptionError(f"whisper model not found: {path}")
        download_model(config, cancel=cancel)
        if not os.path.exists(path):
            raise TranscriptionError(f"whisper model not found after download: {path}")

    work_dir = os.path.abspath(os.path.join(output_dir, f"whisper-{unique_ns()}"))
    try:
        os.makedirs(work_dir)
    except OSError as e:
        raise TranscriptionError(f"whisper work dir not created: {e}") from e
    try:
        try:
            shutil.copyfile(audio_path, os.path.join(work_dir, "input.wav"))
        except OSError as e:
            raise TranscriptionError(f"audio not staged for whisper: {e}") from e
        check_command(
            [
                config.docker_path, "run", "--rm",
                "-v", f"{work_dir}:/work",
                "-v", f"{os.path.dirname(path)}:/models",
                config.docker_image,
                "./main",
                "-m", f"/models/ggml-{config.model}.bin",
                "-f", "/work/input.wav",
                "-of", "/work/transcript",
                "-otxt",
            ],
            label="whisper transcription", cancel=cancel, error_cls=TranscriptionError,
        )
        produced = os.path.join(work_dir, "transcript.txt")
        try:
            with open(produced, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise TranscriptionError(f"transcript not produced: {e}") from e
        final_path = timestamped_path(output_dir, "transcript", "txt")
        try:
            shutil.move(produced, final_path)
        except OSError as e:
            raise TranscriptionError(f"transcript not saved: {e}") from e
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    log.info("transcript ready", extra={"path": final_path, "chars": len(text)})
    return text.strip(), final_path
