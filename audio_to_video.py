from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from a2v.config import PromptTables, load_config
from a2v.errors import JobCancelledError, PipelineError
from a2v.events import JobHandle, start_job
from a2v.logging_utils import get_logger, setup_logging
from a2v.runner import Runner
from a2v.types import Event, JobInput

log = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


def parse_args(argv: Optional[Sequence[str]] = None, tables: Optional[PromptTables] = None) -> argparse.Namespace:
    """Parse CLI arguments for one audio-to-video job."""
    tables = tables or PromptTables()
    parser = argparse.ArgumentParser(description="Render a music video for an audio file")
    parser.add_argument("--audio_path", type=str, required=True, help="Input audio file")
    parser.add_argument("--lyrics", type=str, default="", help="Optional lyrics text")
    parser.add_argument("--lyrics_file", type=str, default=None, help="Read lyrics from a text file")
    parser.add_argument("--preset", type=str, default="", help="Visual preset (e.g. hook, canvas, highlight)")
    parser.add_argument("--style", type=str, default=tables.style_options[0], choices=tables.style_options,
                        help="Style preset")
    parser.add_argument("--aspect_ratio", type=str, default=tables.aspect_options[0],
                        choices=tables.aspect_options, help="Output aspect ratio")
    parser.add_argument("--duration", type=int, default=30, help="Target duration in seconds (default: 30)")
    parser.add_argument("--output_dir", type=str, default=None, help="Output directory (default: OUTPUT_DIR)")
    parser.add_argument("--log_level", type=str, default=None, help="Log level (e.g., INFO, DEBUG)")
    return parser.parse_args(argv)


def format_event(event: Event) -> str:
    return f"[{event.stage}] {event.message} ({event.progress * 100:.0f}%)"


def follow_job(handle: JobHandle) -> int:
    """Print events until the job ends; Ctrl-C cancels the job."""
    try:
        for event in handle.events():
            print(format_event(event), flush=True)
            if event.transcript:
                print(f"transcript ({event.transcript_path}):\n{event.transcript}", flush=True)
    except KeyboardInterrupt:
        log.warning("cancel requested")
        handle.cancel()
        # keep draining so the job can reach its next cancellation check
        for _ in handle.events():
            pass

    try:
        result = handle.wait()
    except JobCancelledError:
        print("cancelled", file=sys.stderr)
        return EXIT_CANCELLED
    except PipelineError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED
    except Exception as e:
        log.exception("job failed with unexpected error")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED
    print(f"video: {result.video_path}")
    print(f"metadata: {result.metadata_path}")
    print(f"job id: {result.job_id}")
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point.

    Examples:
      python3 audio_to_video.py --audio_path song.wav --preset hook --style anime
      python3 audio_to_video.py --audio_path song.wav --lyrics_file lyrics.txt --aspect_ratio 1:1
    """
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.log_level, force=args.log_level is not None)
    config = load_config()

    lyrics = args.lyrics
    if args.lyrics_file:
        with open(args.lyrics_file, "r", encoding="utf-8") as f:
            lyrics = f.read()

    job = JobInput(
        audio_path=args.audio_path,
        output_dir=args.output_dir or config.output_dir,
        lyrics=lyrics,
        preset=args.preset,
        style_preset=args.style,
        aspect_ratio=args.aspect_ratio,
        duration_seconds=args.duration,
    )
    runner = Runner.from_config(config)
    return follow_job(start_job(runner, job))


if __name__ == "__main__":
    sys.exit(main())
