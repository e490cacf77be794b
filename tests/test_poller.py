"""Tests for the remote job poll loop."""

from __future__ import annotations

import threading

import pytest

from a2v.errors import JobCancelledError, RemoteJobFailedError, UnknownJobStatusError
from a2v.poller import poll_remote_job

from conftest import FakeGenerator, status


def _poll(first, rest, interval=0.0, cancel=None):
    emitted = []
    client = FakeGenerator(rest)
    result = poll_remote_job(client, first, lambda *a: emitted.append(a), interval=interval, cancel=cancel)
    return result, emitted, client


def test_succeeded_returns_status():
    result, emitted, client = _poll(status("succeeded", url="u"), [])
    assert result.output_url == "u"
    assert emitted == [("render", "Rendering (succeeded)", 0.4)]
    assert client.fetched == []


def test_polls_until_completed():
    result, emitted, client = _poll(
        status("queued"),
        [status("starting"), status("running"), status("Processing"), status("COMPLETED", url="u")],
    )
    assert [p for _, _, p in emitted] == [0.4, 0.4, 0.6, 0.6, 0.4]
    assert client.fetched == ["job-1"] * 4
    assert result.status == "COMPLETED"


@pytest.mark.parametrize("state", ["failed", "canceled"])
def test_terminal_failure(state):
    with pytest.raises(RemoteJobFailedError, match="job failed"):
        _poll(status("queued"), [status(state)])


def test_unknown_status_names_literal():
    with pytest.raises(UnknownJobStatusError, match="weird") as exc:
        _poll(status("weird"), [])
    assert exc.value.status == "weird"


def test_emits_before_evaluating_failure():
    emitted = []
    with pytest.raises(RemoteJobFailedError):
        poll_remote_job(FakeGenerator([]), status("failed"), lambda *a: emitted.append(a), interval=0)
    assert emitted == [("render", "Rendering (failed)", 0.4)]


def test_job_id_is_fixed_after_submission():
    _, _, client = _poll(status("queued", job_id="A"), [status("queued", job_id="B"), status("succeeded", job_id="C")])
    assert client.fetched == ["A", "A"]


def test_cancel_interrupts_wait():
    cancel = threading.Event()
    timer = threading.Timer(0.05, cancel.set)
    timer.start()
    try:
        with pytest.raises(JobCancelledError):
            _poll(status("queued"), [status("queued")] * 1000, interval=60, cancel=cancel)
    finally:
        timer.cancel()
