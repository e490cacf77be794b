from __future__ import annotations

import argparse
import sys
import threading
from typing import Optional, Sequence

from dotenv import load_dotenv

from a2v.config import PromptTables, load_config
from a2v.errors import PipelineError
from a2v.events import start_job
from a2v.logging_utils import get_logger, setup_logging
from a2v.recorder import Recorder
from a2v.runner import Runner
from a2v.types import JobInput
from audio_to_video import EXIT_FAILED, follow_job

log = get_logger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments for recording (and optionally rendering) audio."""
    tables = PromptTables()
    parser = argparse.ArgumentParser(description="Record audio with ffmpeg, optionally render a video from it")
    parser.add_argument("--device", type=str, default=None, help="Capture device (default: AUDIO_RECORD_DEVICE)")
    parser.add_argument("--seconds", type=int, default=None, help="Max recording length (default: AUDIO_RECORD_SECONDS)")
    parser.add_argument("--run", action="store_true", help="Render a video from the recording")
    parser.add_argument("--preset", type=str, default="", help="Visual preset for --run")
    parser.add_argument("--style", type=str, default=tables.style_options[0], choices=tables.style_options)
    parser.add_argument("--aspect_ratio", type=str, default=tables.aspect_options[0], choices=tables.aspect_options)
    parser.add_argument("--duration", type=int, default=30, help="Target video duration for --run")
    parser.add_argument("--log_level", type=str, default=None, help="Log level (e.g., INFO, DEBUG)")
    return parser.parse_args(argv)


def record(recorder: Recorder) -> str:
    """Record until the duration elapses or Ctrl-C, then return the file path."""
    recorder.start()
    print(f"recording to {recorder.output_path} (Ctrl-C to stop)", flush=True)
    done = threading.Event()
    result = {}

    def wait() -> None:
        try:
            result["path"] = recorder.wait()
        except Exception as e:
            result["error"] = e
        finally:
            done.set()

    threading.Thread(target=wait, name="recorder-wait", daemon=True).start()
    try:
        while not done.wait(0.5):
            pass
    except KeyboardInterrupt:
        recorder.stop()
        done.wait()
    if "error" in result:
        raise result["error"]
    return result["path"]


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.log_level, force=args.log_level is not None)
    config = load_config()

    recorder = Recorder(config.record_config(device=args.device, duration_seconds=args.seconds))
    try:
        path = record(recorder)
    except PipelineError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED
    print(f"recording: {path}")
    if not args.run:
        return 0

    job = JobInput(
        audio_path=path,
        output_dir=config.output_dir,
        preset=args.preset,
        style_preset=args.style,
        aspect_ratio=args.aspect_ratio,
        duration_seconds=args.duration,
    )
    return follow_job(start_job(Runner.from_config(config), job))


if __name__ == "__main__":
    sys.exit(main())
