"""
Transform parameter and plan models.

TransformParams is the per-request input. TransformPlan is the fully
resolved, immutable output of the compiler. Both are frozen dataclasses:
they cross thread boundaries and are never mutated after creation.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple


# Original request field names → TransformParams attributes
_CAMEL_CASE_ALIASES = {
    "randomCuts": "random_cuts",
    "audioMix": "audio_mix",
    "aiDetection": "ai_detection",
    "autoEdit": "auto_edit",
    "contentAnalysis": "content_analysis",
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class TransformParams:
    """
    Speed, pitch and feature toggles for one transform request.

    Values are taken as given. Range checks happen in the compiler so that
    an invalid request is rejected with InvalidParameterError, not a
    construction error deep inside request parsing.
    """

    speed: float = 1.0
    pitch: float = 1.0
    watermark: bool = False
    filters: bool = False
    aspect: bool = False
    random_cuts: bool = False
    audio_mix: bool = False
    ai_detection: bool = False
    auto_edit: bool = False
    content_analysis: bool = False

    @property
    def content_variation(self) -> bool:
        """True when any of the analysis toggles asks for randomized crop/hue."""
        return self.ai_detection or self.auto_edit or self.content_analysis

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TransformParams":
        """
        Build params from a request-style mapping.

        Accepts snake_case keys and the camelCase form-field names
        (randomCuts, audioMix, ...). String booleans ("true", "1") are
        accepted since form values arrive as text. Unknown keys are ignored.
        """
        kwargs = {}
        for key, value in data.items():
            name = _CAMEL_CASE_ALIASES.get(key, key)
            if name in ("speed", "pitch"):
                kwargs[name] = float(value)
            elif name in _TOGGLE_NAMES:
                kwargs[name] = _as_bool(value)
        return cls(**kwargs)


_TOGGLE_NAMES = (
    "watermark",
    "filters",
    "aspect",
    "random_cuts",
    "audio_mix",
    "ai_detection",
    "auto_edit",
    "content_analysis",
)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


@dataclass(frozen=True)
class TrimDirective:
    """Input-side trim: seek to start_offset_seconds, keep duration_seconds."""

    start_offset_seconds: int
    duration_seconds: int

    def to_args(self) -> Tuple[str, ...]:
        return ("-ss", str(self.start_offset_seconds), "-t", str(self.duration_seconds))


@dataclass(frozen=True)
class TransformPlan:
    """
    Ordered, fully-resolved description of one FFmpeg invocation.

    Filter order inside video_filters / audio_filters is significant:
    it is the order FFmpeg applies them in.
    """

    input_path: str
    output_path: str
    video_filters: Tuple[str, ...]
    audio_filters: Tuple[str, ...]
    trim: Optional[TrimDirective] = None
    output_options: Tuple[str, ...] = field(default_factory=tuple)

    FILTER_SEPARATOR = ","

    @property
    def video_chain(self) -> str:
        return self.FILTER_SEPARATOR.join(self.video_filters)

    @property
    def audio_chain(self) -> str:
        return self.FILTER_SEPARATOR.join(self.audio_filters)

    def to_dict(self) -> dict:
        """Convert to dict for JSON output."""
        return {
            "input_path": self.input_path,
            "output_path": self.output_path,
            "video_filters": list(self.video_filters),
            "audio_filters": list(self.audio_filters),
            "trim": (
                {
                    "start_offset_seconds": self.trim.start_offset_seconds,
                    "duration_seconds": self.trim.duration_seconds,
                }
                if self.trim
                else None
            ),
            "output_options": list(self.output_options),
        }
