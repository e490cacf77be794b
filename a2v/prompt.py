from __future__ import annotations

import os
from typing import List

from a2v.config import PromptTables
from a2v.types import Analysis, JobInput


def vibe_from_analysis(analysis: Analysis) -> List[str]:
    """Mood phrases derived from tempo and loudness."""
    notes: List[str] = []
    if analysis.bpm >= 120:
        notes += ["fast paced", "dynamic cuts", "high energy"]
    elif 0 < analysis.bpm <= 90:
        notes += ["slow motion", "smooth transitions", "ambient"]
    if analysis.max_volume >= -10:
        notes += ["intense", "vibrant colors", "high contrast"]
    elif analysis.mean_volume <= -25 and analysis.mean_volume < 0:
        notes += ["minimalist", "soft lighting", "calm"]
    return notes


def build_prompt(job: JobInput, enhanced_path: str, transcript: str, analysis: Analysis,
                 tables: PromptTables) -> str:
    """Assemble the generation prompt. Fragment order is significant."""
    parts: List[str] = [tables.base_phrase]
    parts.extend(tables.notes_for(job.preset))
    if job.style_preset:
        parts.append(f"style {job.style_preset}")
    if job.aspect_ratio:
        parts.append(f"aspect ratio {job.aspect_ratio}")
    if job.lyrics.strip():
        parts.append(f"lyrics: {job.lyrics.strip()}")
    if transcript.strip():
        parts.append(f"transcript: {transcript.strip()}")
    parts.extend(vibe_from_analysis(analysis))
    if enhanced_path:
        parts.append(f"audio source {os.path.basename(enhanced_path)}")
    return ", ".join(parts)
