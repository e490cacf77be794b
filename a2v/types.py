from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class JobInput:
    audio_path: str
    output_dir: str
    lyrics: str = ""
    preset: str = ""
    style_preset: str = ""
    aspect_ratio: str = ""
    duration_seconds: int = 0


@dataclass(frozen=True)
class Event:
    """One progress snapshot emitted by the Runner."""

    stage: str
    message: str
    progress: float
    transcript: str = ""
    transcript_path: str = ""


@dataclass(frozen=True)
class Analysis:
    bpm: float = 0.0
    mean_volume: float = 0.0
    max_volume: float = 0.0
    duration: float = 0.0


class OutputKind(enum.Enum):
    SINGLE = "single"
    CANDIDATES = "candidates"
    ABSENT = "absent"


@dataclass(frozen=True)
class RemoteOutput:
    """Remote job output: one url, a list of candidate urls, or nothing."""

    kind: OutputKind = OutputKind.ABSENT
    urls: Tuple[str, ...] = ()

    @classmethod
    def single(cls, url: str) -> "RemoteOutput":
        if not url:
            return cls()
        return cls(OutputKind.SINGLE, (url,))

    @classmethod
    def candidates(cls, urls) -> "RemoteOutput":
        return cls(OutputKind.CANDIDATES, tuple(urls))

    @classmethod
    def from_json(cls, value: Any) -> "RemoteOutput":
        """Classify the raw ``output`` field of a provider response.

        Non-string list items are dropped so the first string candidate wins.
        """
        if isinstance(value, str):
            return cls.single(value)
        if isinstance(value, list):
            return cls.candidates(item for item in value if isinstance(item, str))
        return cls()


def output_url(output: RemoteOutput) -> Optional[str]:
    if output.kind is OutputKind.SINGLE:
        return output.urls[0]
    if output.kind is OutputKind.CANDIDATES:
        for url in output.urls:
            if url:
                return url
    return None


@dataclass(frozen=True)
class RemoteJobStatus:
    job_id: str
    status: str
    progress: float = 0.0
    output: RemoteOutput = field(default_factory=RemoteOutput)
    error: Optional[str] = None
    logs: str = ""

    @property
    def output_url(self) -> Optional[str]:
        return output_url(self.output)


@dataclass(frozen=True)
class GenerationRequest:
    """Everything a generation backend may need to start a remote job."""

    prompt: str
    audio_path: str
    lyrics: str = ""
    style_preset: str = ""
    aspect_ratio: str = ""
    duration_seconds: int = 0


@dataclass(frozen=True)
class Result:
    job_id: str
    video_path: str
    metadata_path: str
