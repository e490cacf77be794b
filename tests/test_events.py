"""Tests for the event channel, completion signal and job handle."""

from __future__ import annotations

import queue
import threading
import time

import pytest

from a2v.errors import ChannelClosedError, JobCancelledError, RemoteJobFailedError
from a2v.events import Completion, EventChannel, JobOutcome, start_job
from a2v.types import Event, JobInput, Result


def _ev(i: int) -> Event:
    return Event("stage", f"msg {i}", i / 10)


class TestEventChannel:
    def test_send_blocks_until_received(self):
        channel = EventChannel()
        sent = threading.Event()

        def producer():
            channel.send(_ev(1))
            sent.set()

        t = threading.Thread(target=producer)
        t.start()
        assert not sent.wait(0.1)
        assert channel.get(timeout=1).message == "msg 1"
        assert sent.wait(1)
        t.join()

    def test_order_preserved_and_iteration_ends_on_close(self):
        channel = EventChannel()

        def producer():
            for i in range(5):
                channel.send(_ev(i))
            channel.close()

        threading.Thread(target=producer).start()
        assert [e.message for e in channel] == [f"msg {i}" for i in range(5)]

    def test_get_timeout(self):
        with pytest.raises(queue.Empty):
            EventChannel().get(timeout=0.01)

    def test_send_on_closed_channel(self):
        channel = EventChannel()
        channel.close()
        with pytest.raises(ChannelClosedError):
            channel.send(_ev(0))

    def test_cancel_withdraws_pending_event(self):
        channel = EventChannel()
        cancel = threading.Event()
        threading.Timer(0.05, cancel.set).start()
        with pytest.raises(JobCancelledError):
            channel.send(_ev(0), cancel=cancel)
        with pytest.raises(queue.Empty):
            channel.get(timeout=0.05)


class TestCompletion:
    def test_single_slot(self):
        completion = Completion()
        completion.put(JobOutcome(result=Result("j", "v", "m")))
        with pytest.raises(queue.Full):
            completion.put(JobOutcome())
        assert completion.wait().result.job_id == "j"
        assert completion.wait().result.job_id == "j"
        assert completion.done()


class _ScriptedRunner:
    def __init__(self, error=None):
        self.error = error

    def run(self, job, events, cancel=None):
        for i in range(3):
            events.send(_ev(i), cancel=cancel)
        if self.error:
            raise self.error
        return Result("job", "video.mp4", "meta.json")


class TestStartJob:
    JOB = JobInput(audio_path="a.wav", output_dir="out")

    def test_events_then_result(self):
        handle = start_job(_ScriptedRunner(), self.JOB)
        assert len(list(handle.events())) == 3
        assert handle.wait(timeout=1).video_path == "video.mp4"

    def test_error_only_through_completion(self):
        handle = start_job(_ScriptedRunner(RemoteJobFailedError("remote job failed")), self.JOB)
        events = list(handle.events())
        assert [e.message for e in events] == ["msg 0", "msg 1", "msg 2"]
        with pytest.raises(RemoteJobFailedError):
            handle.wait(timeout=1)

    def test_stalled_consumer_stalls_producer(self):
        handle = start_job(_ScriptedRunner(), self.JOB)
        time.sleep(0.05)
        assert not handle.completion.done()
        list(handle.events())
        handle.wait(timeout=1)
        assert handle.completion.done()

    def test_unexpected_exception_is_delivered(self):
        handle = start_job(_ScriptedRunner(ValueError("boom")), self.JOB)
        list(handle.events())
        with pytest.raises(ValueError, match="boom"):
            handle.wait(timeout=1)
