from __future__ import annotations


class PipelineError(Exception):
    """Base error for the audio-to-video pipeline."""


class AudioValidationError(PipelineError):
    """Raised when the input audio path is unusable."""


class AudioNotFoundError(AudioValidationError, FileNotFoundError):
    """Raised when the input audio path does not exist."""


class ConfigurationError(PipelineError):
    """Raised when a required client or setting is missing."""


class ServiceError(PipelineError):
    """Raised when a remote HTTP service call fails."""


class EnhancementError(ServiceError):
    """Raised when the audio enhancement service fails."""


class GenerationError(ServiceError):
    """Raised when the video generation service fails."""


class DownloadError(ServiceError):
    """Raised when fetching the rendered video fails."""


class UploadEncodingError(PipelineError):
    """Raised when the multipart body could not be encoded from the source file."""


class SubprocessError(PipelineError):
    """Raised when an external command exits non-zero."""


class FFmpegError(SubprocessError):
    """Raised when an ffmpeg analysis or mux command fails."""


class TranscriptionError(SubprocessError):
    """Raised when the speech-to-text container fails."""


class RecordingError(SubprocessError):
    """Raised when the audio capture process fails."""


class RemoteJobFailedError(PipelineError):
    """Raised when the remote job reaches a failed or canceled state."""


class UnknownJobStatusError(PipelineError):
    """Raised when the remote job reports a status outside the known vocabulary."""

    def __init__(self, status: str):
        super().__init__(f"remote job status unknown: {status}")
        self.status = status


class MissingOutputError(PipelineError):
    """Raised when a finished remote job carries no output url."""


class JobCancelledError(PipelineError):
    """Raised when the job's cancellation token fires."""


class RecorderStateError(PipelineError):
    """Raised when a Recorder is used outside its lifecycle."""


class ChannelClosedError(PipelineError):
    """Raised when sending on a closed event channel."""


class OutputWriteError(PipelineError):
    """Raised when a job artefact cannot be written to the output directory."""
