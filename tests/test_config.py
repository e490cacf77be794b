"""Tests for environment configuration loading."""

from __future__ import annotations

import pytest

from a2v.config import Config, PromptTables, load_config, parse_duration
from a2v.paths import timestamped_path


def test_defaults_from_empty_env():
    cfg = load_config({})
    assert cfg == Config(transcribe=cfg.transcribe)
    assert cfg.transcribe.enabled is True
    assert cfg.job_poll_interval == 4.0
    assert cfg.http_timeout == 300.0
    assert cfg.replicate_model == "minimax/video-01"


def test_values_from_env():
    cfg = load_config({
        "REPLICATE_API_TOKEN": "tok",
        "REPLICATE_PREFER_WAIT": "false",
        "TRANSCRIBE_ENABLED": "0",
        "AUDIO_RECORD_SECONDS": "42",
        "JOB_POLL_INTERVAL": "500ms",
        "HTTP_TIMEOUT": "2m",
        "GENERATION_BACKEND": "Upload",
    })
    assert cfg.replicate_api_token == "tok"
    assert cfg.replicate_prefer_wait is False
    assert cfg.transcribe.enabled is False
    assert cfg.record_duration_seconds == 42
    assert cfg.job_poll_interval == 0.5
    assert cfg.http_timeout == 120.0
    assert cfg.generation_backend == "upload"


def test_bad_values_fall_back():
    cfg = load_config({"AUDIO_RECORD_SECONDS": "lots", "JOB_POLL_INTERVAL": "soon", "TRANSCRIBE_ENABLED": "maybe"})
    assert cfg.record_duration_seconds == 15
    assert cfg.job_poll_interval == 4.0
    assert cfg.transcribe.enabled is True


@pytest.mark.parametrize("value,expected", [("4", 4.0), ("4s", 4.0), ("1.5s", 1.5), ("250ms", 0.25), ("1h", 3600.0), ("x", None)])
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_record_config_overrides():
    rc = Config(record_device="default", record_duration_seconds=15).record_config(device="hw:2")
    assert rc.device == "hw:2"
    assert rc.duration_seconds == 15


def test_prompt_tables_defaults():
    tables = PromptTables()
    assert tables.style_options == ("cinematic", "anime", "cyberpunk", "surreal", "minimalist")
    assert tables.aspect_options == ("9:16", "1:1")
    assert tables.notes_for(" Canvas ") == ("seamless loop", "subtle motion", "ambient visuals")
    with pytest.raises(TypeError):
        tables.preset_notes["new"] = ("x",)


def test_timestamped_paths_do_not_collide(tmp_path):
    paths = {timestamped_path(str(tmp_path), "final", "mp4") for _ in range(1000)}
    assert len(paths) == 1000
