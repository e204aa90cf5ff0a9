"""
Execution pipeline for compiled plans.

FFmpeg is the sole execution engine. Jobs run under a bounded slot pool;
temp-file cleanup runs on its own small pool.
"""

from .errors import (
    ExecutionError,
    EngineNotAvailableError,
    OutputVerificationError,
)
from .results import (
    ExecutionResult,
    ExecutionStatus,
    FailureReason,
)
from .ffmpeg import (
    build_ffmpeg_command,
    find_ffmpeg,
    find_ffprobe,
    format_command,
)
from .pool import (
    WorkerPool,
    CleanupPool,
    get_worker_pool,
    get_cleanup_pool,
)
from .supervisor import ProcessSupervisor, DrainTask

__all__ = [
    # Errors
    "ExecutionError",
    "EngineNotAvailableError",
    "OutputVerificationError",
    # Results
    "ExecutionResult",
    "ExecutionStatus",
    "FailureReason",
    # Command layer
    "build_ffmpeg_command",
    "find_ffmpeg",
    "find_ffprobe",
    "format_command",
    # Pools
    "WorkerPool",
    "CleanupPool",
    "get_worker_pool",
    "get_cleanup_pool",
    # Supervisor
    "ProcessSupervisor",
    "DrainTask",
]
