"""
Plan compilation: parameters in, ordered FFmpeg filter plan out.
"""

from .errors import (
    PipelineError,
    InvalidParameterError,
    MissingSourceHeightError,
)
from .models import (
    TransformParams,
    TransformPlan,
    TrimDirective,
)
from .randomness import RandomSource, SharedRandom, get_default_random
from .compiler import PipelineCompiler, validate_params

__all__ = [
    # Errors
    "PipelineError",
    "InvalidParameterError",
    "MissingSourceHeightError",
    # Models
    "TransformParams",
    "TransformPlan",
    "TrimDirective",
    # Randomness
    "RandomSource",
    "SharedRandom",
    "get_default_random",
    # Compiler
    "PipelineCompiler",
    "validate_params",
]
