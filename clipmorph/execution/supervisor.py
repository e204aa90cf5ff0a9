"""
Process supervisor: runs one compiled plan as an FFmpeg child process.

Per-job state machine:
    Spawned → Running → COMPLETED | TIMED_OUT | SPAWN_FAILED

Design rules:
- One subprocess per job, argv list, no shell
- Job slot acquired BEFORE spawn, released when the drain task ends
- stderr is drained concurrently with waiting for exit; an undrained
  pipe blocks FFmpeg once the OS buffer fills
- Timeout is measured from process start
- On timeout: stop the drain, SIGTERM → SIGKILL escalation, reap,
  then a BOUNDED join of the drain task (never blocks the caller)
- No retries; every failure collapses into a failed ExecutionResult
- The supervisor never inspects the output file
"""

import logging
import subprocess
import threading
from collections import deque
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Deque, List, Optional, Sequence

from ..pipeline.models import TransformPlan
from ..settings import ClipmorphSettings, get_settings
from .ffmpeg import build_ffmpeg_command, find_ffmpeg, format_command
from .pool import WorkerPool, get_worker_pool
from .results import ExecutionResult, ExecutionStatus, FailureReason

logger = logging.getLogger(__name__)


class DrainTask:
    """
    Drain-and-wait unit of work.

    Reads the process's stderr line by line until EOF, keeping the last
    `tail_lines` lines, then waits for exit and returns the exit code.
    cancel() is cooperative: the loop stops at the next line.
    """

    def __init__(self, process: subprocess.Popen, tail_lines: int = 50):
        self._process = process
        self._stop = threading.Event()
        self._lines: Deque[str] = deque(maxlen=tail_lines)
        self.line_count = 0

    @property
    def tail(self) -> List[str]:
        return list(self._lines)

    def cancel(self) -> None:
        self._stop.set()

    def __call__(self) -> int:
        stream = self._process.stderr
        try:
            if stream is not None:
                for line in stream:
                    self.line_count += 1
                    line = line.rstrip()
                    if line:
                        self._lines.append(line)
                        logger.debug(f"[FFmpeg] {line}")
                    if self._stop.is_set():
                        break
        except (ValueError, OSError):
            # Pipe closed or process terminated
            pass
        finally:
            if stream is not None:
                try:
                    stream.close()
                except OSError:
                    pass

        return self._process.wait()


class ProcessSupervisor:
    """
    Executes plans under the shared job-slot pool.

    Args:
        pool: Job-slot pool (defaults to the process-wide pool)
        settings: Runtime settings (defaults to get_settings())
    """

    def __init__(
        self,
        pool: Optional[WorkerPool] = None,
        settings: Optional[ClipmorphSettings] = None,
    ):
        self._settings = settings if settings is not None else get_settings()
        self._pool = pool if pool is not None else get_worker_pool()

    @property
    def pool(self) -> WorkerPool:
        return self._pool

    def resolve_ffmpeg(self) -> str:
        """
        FFmpeg path to invoke.

        Falls back to the configured (or bare) name when discovery fails,
        so a missing binary surfaces as SPAWN_FAILED rather than an exception.
        """
        configured = self._settings.ffmpeg_path
        return find_ffmpeg(configured) or configured or "ffmpeg"

    def run(self, plan: TransformPlan, timeout_seconds: Optional[float] = None) -> ExecutionResult:
        """
        Execute a compiled plan.

        Args:
            plan: Plan from PipelineCompiler.compile()
            timeout_seconds: Wall-clock budget (defaults to settings.timeout_seconds)

        Returns:
            ExecutionResult; never raises for process failures
        """
        argv = build_ffmpeg_command(plan, self.resolve_ffmpeg())
        return self.run_command(argv, timeout_seconds)

    def run_command(
        self,
        argv: Sequence[str],
        timeout_seconds: Optional[float] = None,
    ) -> ExecutionResult:
        """
        Execute an arbitrary argv under supervision.

        Same contract as run(); run() delegates here after serializing
        the plan.
        """
        timeout = self._settings.timeout_seconds if timeout_seconds is None else timeout_seconds
        if timeout <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout}")

        argv = list(argv)
        command = format_command(argv)
        queued_at = datetime.now()

        # Slot first: queue time never counts against the process timeout
        if not self._pool.acquire_slot(self._settings.slot_timeout_seconds):
            logger.warning(
                f"[Supervisor] No job slot within {self._settings.slot_timeout_seconds}s, "
                f"not starting: {command}"
            )
            return ExecutionResult(
                succeeded=False,
                status=ExecutionStatus.NOT_STARTED,
                failure_reason=FailureReason.QUEUE_TIMEOUT,
                message="No execution slot became available",
                command=command,
                started_at=queued_at,
                completed_at=datetime.now(),
            )

        started_at = datetime.now()
        logger.info(f"[FFmpeg] Executing: {command}")

        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            self._pool.release_slot()
            logger.error(f"[FFmpeg] Failed to start: {e}")
            return ExecutionResult(
                succeeded=False,
                status=ExecutionStatus.SPAWN_FAILED,
                failure_reason=FailureReason.SPAWN_FAILED,
                message=str(e),
                command=command,
                started_at=started_at,
                completed_at=datetime.now(),
            )

        logger.info(f"[FFmpeg] Started PID {process.pid}")

        drain = DrainTask(process, tail_lines=self._settings.diagnostic_tail_lines)
        try:
            future = self._pool.submit_held(drain)
        except RuntimeError:
            # Pool shut down; slot already returned
            self._terminate(process)
            raise

        try:
            exit_code = future.result(timeout=timeout)
        except FutureTimeoutError:
            return self._handle_timeout(process, drain, future, timeout, command, started_at)

        completed_at = datetime.now()
        logger.info(
            f"[FFmpeg] PID {process.pid} exited with code {exit_code} "
            f"({drain.line_count} stderr lines)"
        )

        if exit_code != 0:
            tail = drain.tail
            message = tail[-1] if tail else f"FFmpeg exited with code {exit_code}"
            logger.error(f"[FFmpeg] Failed: {message}")
            return ExecutionResult(
                succeeded=False,
                exit_code=exit_code,
                status=ExecutionStatus.COMPLETED,
                failure_reason=FailureReason.NON_ZERO_EXIT,
                message=message,
                command=command,
                diagnostics=tail,
                started_at=started_at,
                completed_at=completed_at,
            )

        return ExecutionResult(
            succeeded=True,
            exit_code=exit_code,
            status=ExecutionStatus.COMPLETED,
            command=command,
            diagnostics=drain.tail,
            started_at=started_at,
            completed_at=completed_at,
        )

    def _handle_timeout(
        self,
        process: subprocess.Popen,
        drain: DrainTask,
        future: "Future[int]",
        timeout: float,
        command: str,
        started_at: datetime,
    ) -> ExecutionResult:
        logger.warning(f"[FFmpeg] PID {process.pid} timed out after {timeout}s")

        drain.cancel()
        never_started = future.cancel()
        self._terminate(process)

        if never_started:
            # The wrapper that would have released the slot will not run
            self._pool.release_slot()
            if process.stderr is not None:
                process.stderr.close()
        else:
            # Bounded join: a read stuck on an inherited pipe must not hold the caller
            try:
                future.result(timeout=self._settings.drain_join_seconds)
            except FutureTimeoutError:
                logger.warning(f"[Supervisor] Drain task for PID {process.pid} did not finish, leaving it")

        return ExecutionResult(
            succeeded=False,
            timed_out=True,
            status=ExecutionStatus.TIMED_OUT,
            failure_reason=FailureReason.TIMED_OUT,
            message=f"Timed out after {timeout}s",
            command=command,
            diagnostics=drain.tail,
            started_at=started_at,
            completed_at=datetime.now(),
        )

    def _terminate(self, process: subprocess.Popen) -> None:
        """SIGTERM, then SIGKILL after the grace period. Returns once reaped."""
        if process.poll() is not None:
            return

        logger.info(f"[FFmpeg] Sending SIGTERM to PID {process.pid}")
        try:
            process.terminate()
            try:
                process.wait(timeout=self._settings.terminate_grace_seconds)
            except subprocess.TimeoutExpired:
                logger.warning(f"[FFmpeg] PID {process.pid} did not terminate, sending SIGKILL")
                process.kill()
                process.wait()
        except ProcessLookupError:
            pass  # Process already dead
