"""
Source probing via ffprobe.

The aspect filter rescales relative to the source height, so the height
must be known before the plan is compiled. This module is the only place
that reads it.

Command:
    ffprobe -v error -select_streams v:0 -show_entries stream=width,height -of json INPUT
"""

import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..execution.errors import EngineNotAvailableError
from ..execution.ffmpeg import find_ffprobe

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 10.0


class ProbeError(Exception):
    """Raised when source properties cannot be determined."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Cannot probe {path}: {reason}")


@dataclass(frozen=True)
class VideoDimensions:
    """Pixel dimensions of the first video stream."""
    width: int
    height: int


def probe_video_dimensions(
    path: Union[str, Path],
    ffprobe_path: Optional[str] = None,
    timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
) -> VideoDimensions:
    """
    Read width and height of the first video stream.

    Args:
        path: Media file
        ffprobe_path: Explicit ffprobe binary (default: discover)
        timeout: Hard limit for the ffprobe call

    Returns:
        VideoDimensions

    Raises:
        EngineNotAvailableError: ffprobe cannot be found
        ProbeError: File missing, probe failed or timed out, or no video stream
    """
    path = Path(path)
    if not path.is_file():
        raise ProbeError(path, "file not found")

    binary = find_ffprobe(ffprobe_path)
    if binary is None:
        raise EngineNotAvailableError("ffprobe", "not installed or not in PATH")

    cmd = [
        binary,
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height",
        "-of", "json",
        str(path),
    ]

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise ProbeError(path, f"ffprobe timed out after {timeout}s") from None
    except OSError as e:
        raise ProbeError(path, f"ffprobe could not be started: {e}") from e

    if result.returncode != 0:
        detail = result.stderr.strip() or f"exit code {result.returncode}"
        raise ProbeError(path, detail)

    try:
        data = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as e:
        raise ProbeError(path, f"unreadable ffprobe output: {e}") from e

    streams = data.get("streams") or []
    if not streams:
        raise ProbeError(path, "no video stream")

    stream = streams[0]
    try:
        dimensions = VideoDimensions(width=int(stream["width"]), height=int(stream["height"]))
    except (KeyError, TypeError, ValueError):
        raise ProbeError(path, "video stream has no dimensions") from None

    logger.debug(f"[Probe] {path.name}: {dimensions.width}x{dimensions.height}")
    return dimensions


def probe_video_height(
    path: Union[str, Path],
    ffprobe_path: Optional[str] = None,
    timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
) -> int:
    """Height in pixels of the first video stream. See probe_video_dimensions()."""
    return probe_video_dimensions(path, ffprobe_path=ffprobe_path, timeout=timeout).height
