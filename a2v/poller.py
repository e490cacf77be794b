from __future__ import annotations

import threading
from typing import Callable, Optional, Protocol

from a2v.errors import JobCancelledError, RemoteJobFailedError, UnknownJobStatusError
from a2v.logging_utils import get_logger
from a2v.types import RemoteJobStatus

log = get_logger(__name__)

SUCCESS_STATES = frozenset({"succeeded", "completed"})
FAILURE_STATES = frozenset({"failed", "canceled"})
PENDING_STATES = frozenset({"starting", "processing", "running", "queued"})
ACTIVE_STATES = frozenset({"processing", "running"})

WAITING_PROGRESS = 0.4
ACTIVE_PROGRESS = 0.6

Emit = Callable[[str, str, float], None]


class StatusSource(Protocol):
    def fetch(self, job_id: str, cancel: Optional[threading.Event] = None) -> RemoteJobStatus: ...


def poll_remote_job(client: StatusSource, status: RemoteJobStatus, emit: Emit,
                    interval: float = 4.0, cancel: Optional[threading.Event] = None) -> RemoteJobStatus:
    """Re-fetch a remote job every ``interval`` seconds until it is terminal.

    Returns the first successful status. There is no iteration cap: a job
    that stays queued is polled until ``cancel`` fires.
    """
    cancel = cancel or threading.Event()
    job_id = status.job_id
    while True:
        state = status.status.lower()
        progress = ACTIVE_PROGRESS if state in ACTIVE_STATES else WAITING_PROGRESS
        emit("render", f"Rendering ({status.status})", progress)

        if state in SUCCESS_STATES:
            log.info("remote job finished", extra={"job_id": job_id, "status": state})
            return status
        if state in FAILURE_STATES:
            log.error("remote job failed", extra={"job_id": job_id, "status": state, "error": status.error})
            raise RemoteJobFailedError("remote job failed")
        if state not in PENDING_STATES:
            raise UnknownJobStatusError(status.status)

        if cancel.wait(interval):
            log.info("polling cancelled", extra={"job_id": job_id})
            raise JobCancelledError("job cancelled")

        status = client.fetch(job_id, cancel=cancel)
        log.debug("remote job status", extra={"job_id": job_id, "status": status.status})
