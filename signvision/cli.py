"""
SignVision - Stable sign tracking for assistive navigation.

Replays recorded vision-service replies through a detection session and
prints the stabilized track list for every frame.

Usage:
    signvision-replay --input session.jsonl [--config config/settings.yaml]
    python -m signvision --input session.jsonl

Input format (one JSON object per line):
    {"timestamp_ms": 1000, "camera_motion": [0.01, 0.0],
     "response": {"detections": [...], "processing_time_ms": 350}}

Optional device-motion lines feed the fall detector:
    {"timestamp_ms": 1200, "acceleration": [0.3, 19.2, 2.1]}
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterator, Optional

from loguru import logger

from signvision.core.config import load_settings
from signvision.pipeline.session import DetectionSession


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging."""
    logger.remove()  # Remove default handler

    # Console output with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )

    # File output
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )


# ============================================================
# REPLAY
# ============================================================

def read_events(path: Path) -> Iterator[dict]:
    """Yield replay events, skipping blank and unparsable lines."""
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"{path}:{line_no}: skipping invalid JSON ({e})")
                continue
            if not isinstance(event, dict):
                logger.warning(f"{path}:{line_no}: skipping non-object line")
                continue
            yield event


def replay(session: DetectionSession, events: Iterator[dict], out=None) -> int:
    """
    Feed replay events through a session.

    Returns:
        Number of frames processed
    """
    out = out or sys.stdout
    session.start()

    for event in events:
        try:
            now_ms = float(event.get('timestamp_ms', 0.0))
        except (TypeError, ValueError):
            logger.warning(f"Skipping event with bad timestamp: {event.get('timestamp_ms')!r}")
            continue

        acceleration = event.get('acceleration')
        if acceleration is not None:
            try:
                ax, ay, az = (float(v) for v in acceleration)
            except (TypeError, ValueError):
                logger.warning(f"Bad acceleration sample at {now_ms}ms: {acceleration!r}")
                continue
            if session.handle_device_motion(ax, ay, az, now_ms) is not None:
                # A fall pauses the live app; the replay resumes right away
                session.resume()
            continue

        if 'response' not in event:
            continue

        output = session.handle_response(
            event['response'],
            now_ms,
            camera_motion=event.get('camera_motion'),
        )
        record = {
            "timestamp_ms": now_ms,
            "tracks": [t.to_dict() for t in output.tracks],
        }
        if output.announcement is not None:
            record["announced"] = list(output.announcement.labels)
        if output.utterance:
            record["utterance"] = output.utterance
        out.write(json.dumps(record) + "\n")

    return session.frames_processed


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay vision-service replies through the SignVision tracker")
    parser.add_argument("--input", "-i", required=True, help="JSON-lines replay file")
    parser.add_argument("--config", "-c", default=None, help="YAML settings file")
    parser.add_argument("--log-level", default="INFO", help="Console log level")
    parser.add_argument("--log-file", default=None, help="Optional log file")
    parser.add_argument("--no-voice", action="store_true", help="Do not compose spoken feedback")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input file not found: {input_path}")
        return 1

    settings = load_settings(args.config)
    if args.no_voice:
        settings.session.enable_voice = False

    session = DetectionSession(
        tracker_config=settings.tracker,
        session_config=settings.session,
    )

    frames = replay(session, read_events(input_path))
    logger.info(f"Replayed {frames} frame(s), {session.tracker.active_track_count} track(s) held")
    return 0

