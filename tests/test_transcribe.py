"""Tests for containerized transcription."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from a2v.config import TranscribeConfig
from a2v.errors import TranscriptionError
from a2v.transcribe import model_path, transcribe


def test_disabled_returns_empty(tmp_path):
    assert transcribe(TranscribeConfig(enabled=False), "a.wav", str(tmp_path)) == ("", "")


def test_missing_model_without_download(tmp_path, audio_file):
    cfg = TranscribeConfig(enabled=True, model_dir=str(tmp_path / "models"), auto_download=False)
    with pytest.raises(TranscriptionError, match="whisper model not found"):
        transcribe(cfg, str(audio_file), str(tmp_path / "out"))


def test_runs_container_and_moves_transcript(monkeypatch, tmp_path, audio_file):
    models = tmp_path / "models"
    models.mkdir()
    (models / "ggml-tiny.bin").write_bytes(b"model")
    cfg = TranscribeConfig(enabled=True, model="tiny", model_dir=str(models), docker_image="img")
    calls = []

    def fake_check(args, label, cancel=None, error_cls=None):
        calls.append(args)
        mount = args[args.index("-v") + 1]
        work_dir = mount.split(":/work")[0]
        assert Path(work_dir, "input.wav").read_bytes() == audio_file.read_bytes()
        Path(work_dir, "transcript.txt").write_text("  hello there \n", encoding="utf-8")
        return ""

    monkeypatch.setattr("a2v.transcribe.check_command", fake_check)
    out_dir = tmp_path / "out"
    text, path = transcribe(cfg, str(audio_file), str(out_dir))

    assert text == "hello there"
    assert Path(path).name.startswith("transcript-")
    assert Path(path).read_text(encoding="utf-8") == "  hello there \n"
    assert [p.name for p in out_dir.iterdir()] == [Path(path).name]
    args = calls[0]
    assert "img" in args
    assert args[args.index("-m") + 1] == "/models/ggml-tiny.bin"
    assert f"{models}:/models" in args


def test_auto_download(monkeypatch, tmp_path, audio_file):
    models = tmp_path / "models"
    cfg = TranscribeConfig(enabled=True, model="base", model_dir=str(models))
    labels = []

    def fake_check(args, label, cancel=None, error_cls=None):
        labels.append(label)
        if label == "whisper model download":
            Path(model_path(cfg)).write_bytes(b"m")
        else:
            work_dir = args[args.index("-v") + 1].split(":/work")[0]
            Path(work_dir, "transcript.txt").write_text("x", encoding="utf-8")
        return ""

    monkeypatch.setattr("a2v.transcribe.check_command", fake_check)
    transcribe(cfg, str(audio_file), str(tmp_path / "out"))
    assert labels == ["whisper model download", "whisper transcription"]
    assert os.path.isabs(model_path(cfg))


def test_container_failure_cleans_scratch_dir(monkeypatch, tmp_path, audio_file):
    models = tmp_path / "models"
    models.mkdir()
    (models / "ggml-small.bin").write_bytes(b"m")

    def fake_check(args, label, cancel=None, error_cls=None):
        raise TranscriptionError("whisper transcription failed: oops")

    monkeypatch.setattr("a2v.transcribe.check_command", fake_check)
    out_dir = tmp_path / "out"
    with pytest.raises(TranscriptionError, match="oops"):
        transcribe(TranscribeConfig(enabled=True, model_dir=str(models)), str(audio_file), str(out_dir))
    assert list(out_dir.iterdir()) == []


def test_unreadable_audio_is_transcription_error(monkeypatch, tmp_path):
    models = tmp_path / "models"
    models.mkdir()
    (models / "ggml-small.bin").write_bytes(b"m")
    cfg = TranscribeConfig(enabled=True, model_dir=str(models))
    monkeypatch.setattr("a2v.transcribe.check_command", lambda *a, **kw: "")
    out_dir = tmp_path / "out"

    with pytest.raises(TranscriptionError, match="audio not staged"):
        transcribe(cfg, str(tmp_path / "gone.wav"), str(out_dir))
    assert list(out_dir.iterdir()) == []
