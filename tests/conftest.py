from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import pytest

from a2v.types import Analysis, RemoteJobStatus, RemoteOutput


class FakeGenerator:
    """Scripted generation backend: submit returns the first status, fetch the rest."""

    def __init__(self, statuses: List[RemoteJobStatus]):
        self.statuses = list(statuses)
        self.requests = []
        self.fetched: List[str] = []

    def submit(self, request, cancel=None):
        self.requests.append(request)
        return self.statuses.pop(0)

    def fetch(self, job_id, cancel=None):
        self.fetched.append(job_id)
        return self.statuses.pop(0)


class FakeEnhancer:
    def __init__(self, output_name: str = "enhanced-1.wav"):
        self.output_name = output_name
        self.calls = []

    def enhance_audio(self, input_path, output_dir, cancel=None):
        self.calls.append(input_path)
        path = os.path.join(output_dir, self.output_name)
        os.makedirs(output_dir, exist_ok=True)
        Path(path).write_bytes(b"enhanced")
        return path


def status(state: str, job_id: str = "job-1", url: Optional[str] = None) -> RemoteJobStatus:
    output = RemoteOutput.single(url) if url else RemoteOutput()
    return RemoteJobStatus(job_id=job_id, status=state, output=output)


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    path = tmp_path / "song.wav"
    path.write_bytes(b"RIFF....WAVE")
    return path


@pytest.fixture
def media_stubs(monkeypatch, tmp_path: Path):
    """Replace ffmpeg, download and transcription calls made by the Runner."""
    calls = {"analyze": [], "download": [], "mux": [], "transcribe": []}

    def fake_analyze(path, ffmpeg_path="ffmpeg", cancel=None):
        calls["analyze"].append(path)
        return Analysis(bpm=128.0, mean_volume=-20.0, max_volume=-5.0, duration=12.5)

    def fake_download(url, output_dir, session=None, timeout=300.0, cancel=None):
        calls["download"].append(url)
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, "video-1.mp4")
        Path(path).write_bytes(b"video")
        return path

    def fake_mux(video_path, audio_path, output_dir, ffmpeg_path="ffmpeg", cancel=None):
        calls["mux"].append((video_path, audio_path))
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, "final-1.mp4")
        Path(path).write_bytes(b"final")
        return path

    def fake_transcribe(config, audio_path, output_dir, cancel=None):
        calls["transcribe"].append(audio_path)
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, "transcript-1.txt")
        Path(path).write_text("hello world", encoding="utf-8")
        return "hello world", path

    monkeypatch.setattr("a2v.runner.analyze_audio", fake_analyze)
    monkeypatch.setattr("a2v.runner.download_file", fake_download)
    monkeypatch.setattr("a2v.runner.mux_audio", fake_mux)
    monkeypatch.setattr("a2v.runner.transcribe", fake_transcribe)
    return calls
