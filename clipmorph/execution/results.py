"""
Execution result models.

Structured representation of one supervised process run.
Results are machine-readable and human-readable.
"""

from enum import Enum
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class ExecutionStatus(str, Enum):
    """
    Terminal state of a supervised job.

    COMPLETED:    Process ran to exit within the timeout (any exit code)
    TIMED_OUT:    Timeout elapsed; process was terminated
    SPAWN_FAILED: Process could not be started
    NOT_STARTED:  No job slot was acquired in time
    """

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    SPAWN_FAILED = "spawn_failed"
    NOT_STARTED = "not_started"


class FailureReason(str, Enum):
    """Reason code attached to every failed result."""

    SPAWN_FAILED = "spawn_failed"
    TIMED_OUT = "timed_out"
    NON_ZERO_EXIT = "non_zero_exit"
    QUEUE_TIMEOUT = "queue_timeout"
    OUTPUT_MISSING = "output_missing"


class ExecutionResult(BaseModel):
    """
    Result of one supervised process run.

    succeeded is True only for status COMPLETED with exit code 0.
    On failure the caller must not assume the output file exists.
    """

    model_config = ConfigDict(extra="forbid")

    succeeded: bool
    """True when the process exited 0 within the timeout."""

    exit_code: Optional[int] = None
    """Process exit code (None if it never exited on its own)."""

    timed_out: bool = False
    """True when the timeout elapsed and the process was terminated."""

    status: ExecutionStatus = ExecutionStatus.COMPLETED
    """Terminal state of the job."""

    failure_reason: Optional[FailureReason] = None
    """Reason code (set whenever succeeded is False)."""

    message: Optional[str] = None
    """Human-readable detail for failures."""

    command: Optional[str] = None
    """Shell-quoted command line that was executed."""

    diagnostics: List[str] = Field(default_factory=list)
    """Last lines of the diagnostic (stderr) stream."""

    started_at: datetime = Field(default_factory=datetime.now)
    """When execution started."""

    completed_at: Optional[datetime] = None
    """When execution finished (any outcome)."""

    def duration_seconds(self) -> Optional[float]:
        """Calculate execution duration in seconds."""
        if self.completed_at is None:
            return None
        delta = self.completed_at - self.started_at
        return delta.total_seconds()

    def summary(self) -> str:
        """Human-readable summary of execution result."""
        duration_str = ""
        duration = self.duration_seconds()
        if duration is not None:
            duration_str = f" ({duration:.1f}s)"

        if self.succeeded:
            return f"SUCCESS{duration_str}"

        if self.timed_out:
            return f"TIMED OUT{duration_str}"

        reason = self.failure_reason.value if self.failure_reason else "unknown"
        detail = f": {self.message}" if self.message else ""
        code = f" [exit {self.exit_code}]" if self.exit_code is not None else ""
        return f"FAILED ({reason}){code}{duration_str}{detail}"
