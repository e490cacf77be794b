from __future__ import annotations

import threading
from typing import Optional, Protocol

import requests

from a2v.audio import analyze_audio, validate_audio_path
from a2v.config import Config, PromptTables, TranscribeConfig
from a2v.download import download_file
from a2v.enhance_client import EnhanceClient
from a2v.errors import ConfigurationError, JobCancelledError, MissingOutputError
from a2v.events import EventChannel
from a2v.ffmpeg import mux_audio
from a2v.generation_client import PredictionClient, UploadJobClient
from a2v.logging_utils import get_logger
from a2v.metadata import build_metadata, write_metadata
from a2v.poller import poll_remote_job
from a2v.prompt import build_prompt
from a2v.transcribe import transcribe
from a2v.types import Event, GenerationRequest, JobInput, RemoteJobStatus, Result

log = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 4.0


class Generator(Protocol):
    def submit(self, request: GenerationRequest, cancel: Optional[threading.Event] = None) -> RemoteJobStatus: ...

    def fetch(self, job_id: str, cancel: Optional[threading.Event] = None) -> RemoteJobStatus: ...


class Enhancer(Protocol):
    def enhance_audio(self, input_path: str, output_dir: str,
                      cancel: Optional[threading.Event] = None) -> str: ...


class Runner:
    """Drives one job through every stage, in a fixed order.

    Stages: validate, enhance, transcribe (optional), analyze, submit,
    render (polling), download, mux, persist metadata. The first failing
    stage aborts the run and its error is raised; no failure event is sent.
    """

    def __init__(self, generator: Optional[Generator], enhancer: Optional[Enhancer] = None,
                 transcribe_config: Optional[TranscribeConfig] = None,
                 ffmpeg_path: str = "ffmpeg", poll_interval: float = DEFAULT_POLL_INTERVAL,
                 prompt_tables: Optional[PromptTables] = None,
                 session: Optional[requests.Session] = None, http_timeout: float = 300.0):
        self.generator = generator
        self.enhancer = enhancer
        self.transcribe_config = transcribe_config or TranscribeConfig()
        self.ffmpeg_path = ffmpeg_path or "ffmpeg"
        self.poll_interval = poll_interval if poll_interval > 0 else DEFAULT_POLL_INTERVAL
        self.prompt_tables = prompt_tables or PromptTables()
        self.session = session or requests.Session()
        self.http_timeout = http_timeout

    @classmethod
    def from_config(cls, config: Config, prompt_tables: Optional[PromptTables] = None) -> "Runner":
        session = requests.Session()
        enhancer = None
        if config.elevenlabs_api_key:
            enhancer = EnhanceClient(config.elevenlabs_api_key, config.elevenlabs_base_url,
                                     config.elevenlabs_enhance_path, timeout=config.http_timeout,
                                     session=session)
        generator: Optional[Generator] = None
        if config.generation_backend == "upload":
            if config.ltx2_base_url:
                generator = UploadJobClient(config.ltx2_base_url, config.ltx2_generate_path,
                                            config.ltx2_status_path, config.ltx2_download_path,
                                            timeout=config.http_timeout, session=session)
        elif config.replicate_api_token:
            generator = PredictionClient(config.replicate_api_token, config.replicate_base_url,
                                         config.replicate_model, prefer_wait=config.replicate_prefer_wait,
                                         timeout=config.http_timeout, session=session)
        if generator is None:
            log.warning("no generation client configured", extra={"backend": config.generation_backend})
        return cls(generator, enhancer=enhancer, transcribe_config=config.transcribe,
                   ffmpeg_path=config.ffmpeg_path, poll_interval=config.job_poll_interval,
                   prompt_tables=prompt_tables, session=session, http_timeout=config.http_timeout)

    def run(self, job: JobInput, events: Optional[EventChannel] = None,
            cancel: Optional[threading.Event] = None) -> Result:
        cancel = cancel or threading.Event()

        def send(stage: str, message: str, progress: float, transcript: str = "",
                 transcript_path: str = "") -> None:
            if events is not None:
                events.send(Event(stage, message, progress, transcript, transcript_path), cancel=cancel)

        def check_cancel() -> None:
            if cancel.is_set():
                raise JobCancelledError("job cancelled")

        if self.generator is None:
            raise ConfigurationError("generation client not configured")

        log.info("job start", extra={"audio": job.audio_path, "preset": job.preset,
                                     "style": job.style_preset, "aspect": job.aspect_ratio})

        send("validate", "Validating audio", 0.05)
        validate_audio_path(job.audio_path)

        send("enhance", "Enhancing audio", 0.2)
        enhanced_path = job.audio_path
        if self.enhancer is not None:
            enhanced_path = self.enhancer.enhance_audio(job.audio_path, job.output_dir, cancel=cancel)
        check_cancel()

        transcript, transcript_path = "", ""
        if self.transcribe_config.enabled:
            send("transcribe", "Transcribing audio", 0.3)
            transcript, transcript_path = transcribe(self.transcribe_config, job.audio_path,
                                                     job.output_dir, cancel=cancel)
            send("transcribe", "Transcript ready", 0.35, transcript, transcript_path)

        send("analyze", "Analyzing audio", 0.36)
        analysis = analyze_audio(job.audio_path, self.ffmpeg_path, cancel=cancel)

        send("submit", "Submitting generation job", 0.4)
        prompt = build_prompt(job, enhanced_path, transcript, analysis, self.prompt_tables)
        log.debug("prompt built", extra={"prompt": prompt})
        submitted = self.generator.submit(GenerationRequest(
            prompt=prompt,
            audio_path=enhanced_path,
            lyrics=job.lyrics,
            style_preset=job.style_preset,
            aspect_ratio=job.aspect_ratio,
            duration_seconds=job.duration_seconds,
        ), cancel=cancel)
        job_id = submitted.job_id
        log.info("remote job submitted", extra={"job_id": job_id})

        final = poll_remote_job(self.generator, submitted, send, interval=self.poll_interval, cancel=cancel)

        send("download", "Downloading video", 0.9)
        url = final.output_url
        if not url:
            raise MissingOutputError("missing output url")
        video_path = download_file(url, job.output_dir, session=self.session,
                                   timeout=self.http_timeout, cancel=cancel)

        muxed_path = mux_audio(video_path, job.audio_path, job.output_dir, self.ffmpeg_path, cancel=cancel)
        check_cancel()

        record = build_metadata(job, job_id, muxed_path, transcript, transcript_path, analysis)
        metadata_path = write_metadata(job.output_dir, record)

        send("done", "Completed", 1.0)
        log.info("job done", extra={"job_id": job_id, "video": muxed_path})
        return Result(job_id=job_id, video_path=muxed_path, metadata_path=metadata_path)
