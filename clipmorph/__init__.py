"""
clipmorph — compile media transform parameters into an FFmpeg plan and
run it under bounded, timeout-enforced supervision.
"""

from .pipeline import (
    InvalidParameterError,
    PipelineCompiler,
    SharedRandom,
    TransformParams,
    TransformPlan,
)
from .execution import (
    ExecutionResult,
    ExecutionStatus,
    FailureReason,
    ProcessSupervisor,
)
from .service import TransformOutcome, TransformService
from .settings import ClipmorphSettings, get_settings

__version__ = "0.1.0"

__all__ = [
    "InvalidParameterError",
    "PipelineCompiler",
    "SharedRandom",
    "TransformParams",
    "TransformPlan",
    "ExecutionResult",
    "ExecutionStatus",
    "FailureReason",
    "ProcessSupervisor",
    "TransformOutcome",
    "TransformService",
    "ClipmorphSettings",
    "get_settings",
]
