"""
FFmpeg command layer.

Turns a TransformPlan into one argv list. No shell is involved:
paths and filter chains are passed as separate arguments, so no quoting
is needed. format_command() produces the shell-quoted string kept for
audit and logs.
"""

import logging
import os
import shlex
import shutil
from typing import List, Optional, Sequence

from ..pipeline.models import TransformPlan

logger = logging.getLogger(__name__)


# Common install locations, checked after PATH
COMMON_BINARY_DIRS = (
    "/usr/local/bin",
    "/usr/bin",
    "/opt/homebrew/bin",
)


def find_binary(name: str, configured: Optional[str] = None) -> Optional[str]:
    """
    Locate an executable.

    Order: configured path, PATH lookup, common install locations.

    Returns:
        Absolute path, or None if not found
    """
    if configured:
        if os.path.isfile(configured) and os.access(configured, os.X_OK):
            return configured
        resolved = shutil.which(configured)
        if resolved:
            return resolved
        logger.warning(f"[FFmpeg] Configured {name} not executable: {configured}")
        return None

    found = shutil.which(name)
    if found:
        return found

    for directory in COMMON_BINARY_DIRS:
        path = os.path.join(directory, name)
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path

    return None


def find_ffmpeg(configured: Optional[str] = None) -> Optional[str]:
    return find_binary("ffmpeg", configured)


def find_ffprobe(configured: Optional[str] = None) -> Optional[str]:
    return find_binary("ffprobe", configured)


def build_ffmpeg_command(plan: TransformPlan, ffmpeg_path: str = "ffmpeg") -> List[str]:
    """
    Build FFmpeg command line arguments for a plan.

    Layout:
        ffmpeg -y [-ss S -t D] -i INPUT -vf VIDEO_CHAIN -af AUDIO_CHAIN OPTIONS OUTPUT

    The trim directive is an input option, so it precedes -i.
    """
    cmd = [ffmpeg_path, "-y"]  # -y to overwrite output

    if plan.trim is not None:
        cmd.extend(plan.trim.to_args())

    cmd.extend(["-i", plan.input_path])

    if plan.video_filters:
        cmd.extend(["-vf", plan.video_chain])

    if plan.audio_filters:
        cmd.extend(["-af", plan.audio_chain])

    cmd.extend(plan.output_options)
    cmd.append(plan.output_path)
    return cmd


def format_command(argv: Sequence[str]) -> str:
    """Shell-quoted single-line rendering of argv."""
    return shlex.join(list(argv))
