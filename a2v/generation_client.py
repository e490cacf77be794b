from __future__ import annotations

import threading
from typing import Any, Dict, Optional

import requests

from a2v.errors import ConfigurationError, GenerationError, JobCancelledError
from a2v.logging_utils import get_logger
from a2v.multipart import StreamingMultipartBody, post_multipart
from a2v.types import GenerationRequest, RemoteJobStatus, RemoteOutput

log = get_logger(__name__)


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise JobCancelledError("job cancelled")


def _decode_json(resp: requests.Response, what: str) -> Dict[str, Any]:
    try:
        payload = resp.json()
    except ValueError as e:
        raise GenerationError(f"{what}: invalid json response: {e}") from e
    if not isinstance(payload, dict):
        raise GenerationError(f"{what}: unexpected response: {payload!r}")
    return payload


def _error_text(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)


class PredictionClient:
    """Prediction-style generation API (Replicate HTTP API).

    ``POST {base}/models/{model}/predictions`` starts a job and
    ``GET {base}/predictions/{id}`` reports its status.
    """

    def __init__(self, api_token: str, base_url: str = "https://api.replicate.com/v1",
                 model: str = "minimax/video-01", prefer_wait: bool = False,
                 timeout: float = 300.0, session: Optional[requests.Session] = None):
        self.api_token = api_token
        self.base_url = (base_url or "https://api.replicate.com/v1").rstrip("/")
        self.model = model or "minimax/video-01"
        self.prefer_wait = prefer_wait
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_token}"}

    @staticmethod
    def build_input(request: GenerationRequest) -> Dict[str, Any]:
        return {
            "prompt": request.prompt,
            "prompt_optimizer": True,
            "duration": request.duration_seconds,
            "aspect_ratio": request.aspect_ratio,
        }

    @staticmethod
    def parse_status(payload: Dict[str, Any], job_id: str = "") -> RemoteJobStatus:
        return RemoteJobStatus(
            job_id=str(payload.get("id") or job_id),
            status=str(payload.get("status") or ""),
            output=RemoteOutput.from_json(payload.get("output")),
            error=_error_text(payload.get("error")),
            logs=str(payload.get("logs") or ""),
        )

    def submit(self, request: GenerationRequest, cancel: Optional[threading.Event] = None) -> RemoteJobStatus:
        if not self.api_token:
            raise ConfigurationError("replicate api token is required")
        _check_cancel(cancel)
        url = f"{self.base_url}/models/{self.model}/predictions"
        headers = self._headers()
        if self.prefer_wait:
            headers["Prefer"] = "wait"
        log.debug("prediction submit", extra={"url": url, "prefer_wait": self.prefer_wait})
        try:
            resp = self.session.post(url, json={"input": self.build_input(request)},
                                     headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise GenerationError(f"replicate submit failed: {e}") from e
        _check_cancel(cancel)
        if resp.status_code >= 400:
            log.error("prediction submit rejected", extra={"status": resp.status_code})
            raise GenerationError(f"replicate submit error: {resp.text}")
        status = self.parse_status(_decode_json(resp, "replicate submit"))
        if not status.job_id:
            raise GenerationError("replicate response missing prediction id")
        log.info("prediction submitted", extra={"job_id": status.job_id, "status": status.status})
        return status

    def fetch(self, job_id: str, cancel: Optional[threading.Event] = None) -> RemoteJobStatus:
        _check_cancel(cancel)
        url = f"{self.base_url}/predictions/{job_id}"
        try:
            resp = self.session.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise GenerationError(f"replicate status failed: {e}") from e
        _check_cancel(cancel)
        if resp.status_code >= 400:
            raise GenerationError(f"replicate status error: {resp.text}")
        return self.parse_status(_decode_json(resp, "replicate status"), job_id=job_id)


class UploadJobClient:
    """Generation API that takes the audio file itself as a multipart upload.

    Paths are format strings with a ``{job_id}`` placeholder.
    """

    def __init__(self, base_url: str, generate_path: str = "/generate",
                 status_path: str = "/status/{job_id}", download_path: str = "/download/{job_id}",
                 timeout: float = 300.0, session: Optional[requests.Session] = None):
        self.base_url = (base_url or "").rstrip("/")
        self.generate_path = generate_path
        self.status_path = status_path
        self.download_path = download_path
        self.timeout = timeout
        self.session = session or requests.Session()

    def submit(self, request: GenerationRequest, cancel: Optional[threading.Event] = None) -> RemoteJobStatus:
        if not self.base_url:
            raise ConfigurationError("ltx2 base url is required")
        fields = [
            ("prompt", request.prompt),
            ("lyrics", request.lyrics),
            ("style", request.style_preset),
            ("aspect_ratio", request.aspect_ratio),
            ("duration_seconds", str(request.duration_seconds)),
        ]
        body = StreamingMultipartBody("audio", request.audio_path, fields=fields, cancel=cancel)
        resp = post_multipart(self.session, self.base_url + self.generate_path, body,
                              timeout=self.timeout, error_cls=GenerationError)
        with resp:
            if resp.status_code >= 400:
                raise GenerationError(f"ltx2 submit error: {resp.text}")
            payload = _decode_json(resp, "ltx2 submit")
        job_id = str(payload.get("job_id") or payload.get("id") or "")
        if not job_id:
            raise GenerationError("ltx2 response missing job id")
        log.info("upload job submitted", extra={"job_id": job_id})
        # The submit response carries no status; start the poll loop as queued.
        return RemoteJobStatus(job_id=job_id, status="queued")

    def parse_status(self, payload: Dict[str, Any], job_id: str) -> RemoteJobStatus:
        job_id = str(payload.get("id") or job_id)
        url = str(payload.get("output_url") or "")
        if not url and self.download_path:
            url = self.base_url + self.download_path.format(job_id=job_id)
        try:
            progress = float(payload.get("progress") or 0.0)
        except (TypeError, ValueError):
            progress = 0.0
        return RemoteJobStatus(
            job_id=job_id,
            status=str(payload.get("status") or ""),
            progress=progress,
            output=RemoteOutput.single(url),
            error=_error_text(payload.get("error")),
        )

    def fetch(self, job_id: str, cancel: Optional[threading.Event] = None) -> RemoteJobStatus:
        _check_cancel(cancel)
        url = self.base_url + self.status_path.format(job_id=job_id)
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise GenerationError(f"ltx2 status failed: {e}") from e
        _check_cancel(cancel)
        if resp.status_code >= 400:
            raise GenerationError(f"ltx2 status error: {resp.text}")
        return self.parse_status(_decode_json(resp, "ltx2 status"), job_id)
