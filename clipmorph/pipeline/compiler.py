"""
Pipeline compiler: TransformParams → TransformPlan.

Pure mapping. No I/O, no subprocesses. The only external input is the
injected random source.

Step order (fixed; random draws happen in exactly this order):
1. setpts speed filter (always, always first)
2. Content variation (ai_detection / auto_edit / content_analysis):
   crop + hue, and an input trim when random_cuts is also set
3. filters: colorchannelmixer + eq
4. watermark: drawtext
5. aspect: scale to a randomized height (needs the probed source height)
6. atempo + asetrate audio filters (always)
7. audio_mix: aecho
8. Chains joined with "," in step order
9. Fixed encoding options from settings
"""

import logging
import math
from typing import List, Optional, Union
from pathlib import Path

from ..settings import ClipmorphSettings, get_settings
from .errors import InvalidParameterError, MissingSourceHeightError
from .models import TransformParams, TransformPlan, TrimDirective
from .randomness import RandomSource, get_default_random

logger = logging.getLogger(__name__)


# drawtext opacity levels
WATERMARK_ALPHAS = (0.3, 0.4, 0.5, 0.6)

# aecho in-gain / out-gain
ECHO_GAINS = "0.8:0.9"


class PipelineCompiler:
    """
    Compiles transform parameters into an ordered FFmpeg plan.

    Safe to share between threads: holds no per-call state, and the
    random source is required to be thread-safe.
    """

    def __init__(
        self,
        rng: Optional[RandomSource] = None,
        settings: Optional[ClipmorphSettings] = None,
    ):
        self._rng = rng if rng is not None else get_default_random()
        self._settings = settings if settings is not None else get_settings()

    def compile(
        self,
        params: TransformParams,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        source_height: Optional[int] = None,
    ) -> TransformPlan:
        """
        Build the plan for one request.

        Args:
            params: Speed, pitch and toggles
            input_path: Staged source file
            output_path: Destination file
            source_height: Probed source height in pixels. Required when
                params.aspect is set.

        Returns:
            Immutable TransformPlan

        Raises:
            InvalidParameterError: speed or pitch not a positive number
            MissingSourceHeightError: aspect set without a usable source height
        """
        self._validate(params, source_height)

        rng = self._rng
        video_filters: List[str] = []
        audio_filters: List[str] = []
        trim: Optional[TrimDirective] = None

        # 1. Speed
        video_filters.append(f"setpts={1 / params.speed}*PTS")

        # 2. Content variation
        if params.content_variation:
            video_filters.append(f"crop=iw-{rng.randrange(0, 50)}:ih-{rng.randrange(0, 50)}")
            video_filters.append(
                f"hue=h={rng.randrange(-10, 10)}:s={0.9 + rng.random() * 0.2}"
            )
            if params.random_cuts:
                trim = TrimDirective(
                    start_offset_seconds=rng.randrange(0, 5),
                    duration_seconds=10 + rng.randrange(0, 30),
                )

        # 3. Color filters
        if params.filters:
            video_filters.append(
                f"colorchannelmixer=rr={0.8 + rng.random() * 0.4}"
                f":gg={0.8 + rng.random() * 0.4}"
                f":bb={0.8 + rng.random() * 0.4}"
            )
            video_filters.append(
                f"eq=contrast={1.0 + rng.random() * 0.3}"
                f":brightness={rng.random() * 0.1 - 0.05}"
            )

        # 4. Watermark
        if params.watermark:
            video_filters.append(
                f"drawtext=text='{self._settings.watermark_text}'"
                f":x={10 + rng.randrange(0, 50)}"
                f":y=h-th-{10 + rng.randrange(0, 50)}"
                f":fontsize={20 + rng.randrange(0, 15)}"
                f":fontcolor=white@{rng.choice(WATERMARK_ALPHAS)}"
            )

        # 5. Aspect
        if params.aspect:
            scaled_height = int(source_height * (0.8 + rng.random() * 0.4))
            video_filters.append(f"scale=iw:{scaled_height}")

        # 6. Tempo and pitch
        audio_filters.append(f"atempo={float(params.speed)}")
        audio_filters.append(f"asetrate={self._settings.base_sample_rate}*{float(params.pitch)}")

        # 7. Echo
        if params.audio_mix:
            audio_filters.append(
                f"aecho={ECHO_GAINS}:{500 + rng.randrange(0, 1000)}:{0.4 + rng.random() * 0.3}"
            )

        plan = TransformPlan(
            input_path=str(input_path),
            output_path=str(output_path),
            video_filters=tuple(video_filters),
            audio_filters=tuple(audio_filters),
            trim=trim,
            output_options=self._settings.output_options(),
        )

        logger.debug(
            f"[Compiler] {len(plan.video_filters)} video / {len(plan.audio_filters)} audio filters"
            f"{' with trim' if trim else ''} for {plan.input_path}"
        )
        return plan

    @staticmethod
    def _validate(params: TransformParams, source_height: Optional[int]) -> None:
        validate_params(params)
        if params.aspect and (source_height is None or source_height <= 0):
            raise MissingSourceHeightError(source_height)


def validate_params(params: TransformParams) -> None:
    """
    Reject speed/pitch values that would yield an undefined filter.

    Raises:
        InvalidParameterError: value is not a finite number > 0
    """
    for name in ("speed", "pitch"):
        value = getattr(params, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidParameterError(name, value, "must be a number")
        if not math.isfinite(value) or value <= 0:
            raise InvalidParameterError(name, value)
