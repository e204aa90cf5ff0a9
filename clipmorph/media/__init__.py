"""
Source media inspection.
"""

from .probe import (
    ProbeError,
    VideoDimensions,
    probe_video_dimensions,
    probe_video_height,
)

__all__ = [
    "ProbeError",
    "VideoDimensions",
    "probe_video_dimensions",
    "probe_video_height",
]
