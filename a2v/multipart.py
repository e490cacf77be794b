"""Streaming multipart/form-data request bodies.

An encoder thread reads the source file and writes encoded parts into a
small bounded queue while ``requests`` transmits whatever is already
queued, so a large upload never sits in memory as a whole. Encoding
errors are recorded on the body and checked after the HTTP exchange.
"""
from __future__ import annotations

import os
import queue
import threading
import uuid
from typing import Iterator, List, Mapping, Optional, Sequence, Tuple, Type

import requests

from a2v.errors import JobCancelledError, ServiceError, UploadEncodingError
from a2v.logging_utils import get_logger

log = get_logger(__name__)

CHUNK_SIZE = 64 * 1024
WINDOW = 4
_WAIT_SECONDS = 0.1
_EOF = object()


class _Aborted(Exception):
    pass


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class StreamingMultipartBody:
    """One multipart body: a single file part followed by plain form fields.

    At most ``window`` chunks of ``chunk_size`` bytes are buffered between
    the encoder thread and the transmitting side.
    """

    def __init__(self, file_field: str, file_path: str,
                 fields: Sequence[Tuple[str, str]] = (),
                 boundary: Optional[str] = None,
                 chunk_size: int = CHUNK_SIZE,
                 window: int = WINDOW,
                 cancel: Optional[threading.Event] = None):
        self.file_field = file_field
        self.file_path = file_path
        self.fields: List[Tuple[str, str]] = list(fields)
        self.boundary = boundary or uuid.uuid4().hex
        self.chunk_size = chunk_size
        self.cancel = cancel
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=max(1, window))
        self._abort = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.error: Optional[BaseException] = None

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("multipart body already started")
        self._thread = threading.Thread(target=self._encode, name="multipart-encoder", daemon=True)
        self._thread.start()

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the encoder (if still running) and wait for it to exit."""
        self._abort.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def chunks(self) -> Iterator[bytes]:
        """Yield encoded bytes as the encoder produces them."""
        if self._thread is None:
            self.start()
        while True:
            if self.cancel is not None and self.cancel.is_set():
                self._abort.set()
                raise JobCancelledError("job cancelled")
            try:
                item = self._queue.get(timeout=_WAIT_SECONDS)
            except queue.Empty:
                if self._abort.is_set():
                    return
                continue
            if item is _EOF:
                return
            yield item  # type: ignore[misc]

    # encoder side

    def _put(self, data: object) -> None:
        while True:
            if self._abort.is_set():
                raise _Aborted()
            try:
                self._queue.put(data, timeout=_WAIT_SECONDS)
                return
            except queue.Full:
                continue

    def _encode(self) -> None:
        dash = f"--{self.boundary}\r\n".encode()
        try:
            with open(self.file_path, "rb") as f:
                filename = os.path.basename(self.file_path)
                self._put(dash + (
                    f'Content-Disposition: form-data; name="{_quote(self.file_field)}"; '
                    f'filename="{_quote(filename)}"\r\n'
                    "Content-Type: application/octet-stream\r\n\r\n"
                ).encode())
                while True:
                    chunk = f.read(self.chunk_size)
                    if not chunk:
                        break
                    self._put(chunk)
                self._put(b"\r\n")
            for name, value in self.fields:
                self._put(dash + (
                    f'Content-Disposition: form-data; name="{_quote(name)}"\r\n\r\n'
                    f"{value}\r\n"
                ).encode())
            self._put(f"--{self.boundary}--\r\n".encode())
        except _Aborted:
            log.debug("multipart encoder aborted", extra={"file": self.file_path})
        except Exception as e:
            self.error = e
            log.error("multipart encoding failed", extra={"file": self.file_path, "error": str(e)})
        finally:
            try:
                self._put(_EOF)
            except _Aborted:
                pass


def post_multipart(session: requests.Session, url: str, body: StreamingMultipartBody,
                   headers: Optional[Mapping[str, str]] = None, timeout: float = 300.0,
                   error_cls: Type[ServiceError] = ServiceError) -> requests.Response:
    """POST ``body`` to ``url`` while it is still being encoded.

    An encoding failure wins over a transport failure when both happen,
    since the transport error is usually a consequence of the short body.
    """
    send_headers = dict(headers or {})
    send_headers["Content-Type"] = body.content_type
    body.start()
    resp: Optional[requests.Response] = None
    transport_error: Optional[requests.exceptions.RequestException] = None
    try:
        resp = session.post(url, data=body.chunks(), headers=send_headers, timeout=timeout)
    except requests.exceptions.RequestException as e:
        transport_error = e
    finally:
        body.close()

    if body.error is not None:
        if resp is not None:
            resp.close()
        raise UploadEncodingError(f"multipart encoding failed: {body.error}") from body.error
    if transport_error is not None:
        log.error("multipart upload failed", extra={"url": url, "error": str(transport_error)})
        raise error_cls(f"upload request failed: {transport_error}") from transport_error
    assert resp is not None
    return resp
