"""
Execution-specific errors.

Process failures (spawn, timeout, non-zero exit) are NOT raised: they
collapse into a failed ExecutionResult at the supervisor boundary.
These exceptions cover the surrounding preconditions only.
"""


class ExecutionError(Exception):
    """
    Base exception for execution failures.

    All execution errors inherit from this.
    """

    pass


class EngineNotAvailableError(ExecutionError):
    """Raised when a required binary (ffmpeg, ffprobe) cannot be located."""

    def __init__(self, binary: str, reason: str = ""):
        self.binary = binary
        self.reason = reason
        message = f"'{binary}' is not available"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class OutputVerificationError(ExecutionError):
    """
    Output verification failed.

    Raised when the process exited 0 but the output is unusable:
    - Output file missing
    - Output file zero bytes
    """

    def __init__(self, output_path: str, reason: str):
        self.output_path = output_path
        self.reason = reason
        super().__init__(f"Output verification failed for {output_path}: {reason}")
