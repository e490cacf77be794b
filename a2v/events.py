"""Progress transport between a running job and its observer.

Events travel over an unbuffered channel: the producer blocks in send()
until a consumer takes the event, so a stalled consumer stalls the job.
The final result travels separately over a single-slot completion queue.
"""
from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Optional

from a2v.errors import ChannelClosedError, JobCancelledError, PipelineError
from a2v.logging_utils import get_logger
from a2v.types import Event, JobInput, Result

if TYPE_CHECKING:
    from a2v.runner import Runner

log = get_logger(__name__)

_EMPTY = object()
_CANCEL_POLL_SECONDS = 0.1


class EventChannel:
    """Rendezvous channel for Event objects."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._item: object = _EMPTY
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def send(self, event: Event, cancel: Optional[threading.Event] = None) -> None:
        """Hand ``event`` to a receiver, blocking until one has taken it."""
        with self._cond:
            while self._item is not _EMPTY and not self._closed:
                self._wait_or_cancel(cancel)
            if self._closed:
                raise ChannelClosedError("event channel closed")
            self._item = event
            self._cond.notify_all()
            while self._item is event and not self._closed:
                try:
                    self._wait_or_cancel(cancel)
                except JobCancelledError:
                    if self._item is event:
                        self._item = _EMPTY
                        self._cond.notify_all()
                        raise
                    # taken between the timeout and the cancel check
                    return

    def _wait_or_cancel(self, cancel: Optional[threading.Event]) -> None:
        if cancel is None:
            self._cond.wait()
            return
        if cancel.is_set():
            raise JobCancelledError("job cancelled")
        self._cond.wait(_CANCEL_POLL_SECONDS)

    def get(self, timeout: Optional[float] = None) -> Event:
        """Take the next event.

        Raises ``queue.Empty`` on timeout and ChannelClosedError once the
        channel is closed and drained.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._item is not _EMPTY or self._closed, timeout):
                raise queue.Empty
            if self._item is _EMPTY:
                raise ChannelClosedError("event channel closed")
            event = self._item
            self._item = _EMPTY
            self._cond.notify_all()
            return event  # type: ignore[return-value]

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __iter__(self) -> Iterator[Event]:
        while True:
            try:
                yield self.get()
            except ChannelClosedError:
                return


@dataclass(frozen=True)
class JobOutcome:
    result: Optional[Result] = None
    error: Optional[BaseException] = None


class Completion:
    """Single-slot completion signal carrying a JobOutcome."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[JobOutcome]" = queue.Queue(maxsize=1)
        self._outcome: Optional[JobOutcome] = None

    def put(self, outcome: JobOutcome) -> None:
        self._queue.put_nowait(outcome)

    def wait(self, timeout: Optional[float] = None) -> JobOutcome:
        """Block for the outcome; repeat calls return the same outcome."""
        if self._outcome is None:
            self._outcome = self._queue.get(timeout=timeout)
        return self._outcome

    def done(self) -> bool:
        return self._outcome is not None or not self._queue.empty()


class JobHandle:
    def __init__(self, events: EventChannel, completion: Completion,
                 cancel_token: threading.Event, thread: threading.Thread):
        self.channel = events
        self.completion = completion
        self.cancel_token = cancel_token
        self.thread = thread

    def events(self) -> Iterator[Event]:
        return iter(self.channel)

    def cancel(self) -> None:
        self.cancel_token.set()

    def wait(self, timeout: Optional[float] = None) -> Result:
        """Return the job's Result or raise the error that ended it."""
        outcome = self.completion.wait(timeout)
        if outcome.error is not None:
            raise outcome.error
        assert outcome.result is not None
        return outcome.result


def start_job(runner: "Runner", job: JobInput, cancel: Optional[threading.Event] = None) -> JobHandle:
    """Run ``runner.run(job, ...)`` on its own thread and return a handle.

    The channel is closed once the run returns; the outcome is posted to
    the completion slot after that, so draining events then waiting never
    deadlocks.
    """
    channel = EventChannel()
    completion = Completion()
    token = cancel or threading.Event()

    def work() -> None:
        outcome = JobOutcome()
        try:
            outcome = JobOutcome(result=runner.run(job, channel, cancel=token))
        except PipelineError as e:
            log.info("job ended with error", extra={"error": str(e), "kind": type(e).__name__})
            outcome = JobOutcome(error=e)
        except Exception as e:
            log.exception("job crashed")
            outcome = JobOutcome(error=e)
        finally:
            channel.close()
            completion.put(outcome)

    thread = threading.Thread(target=work, name="a2v-job", daemon=True)
    thread.start()
    return JobHandle(channel, completion, token, thread)
