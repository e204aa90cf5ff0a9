"""
Transform service: the caller-side flow around compile and run.

Steps per request:
1. Validate speed/pitch (before anything touches disk)
2. Stage the upload into the temp directory under a unique name
3. Probe the source height when the aspect toggle is set
4. Compile the plan
5. Run it under the supervisor with the configured timeout
6. Verify the output file exists and is non-empty
7. On exit (any outcome, including exceptions) schedule deletion of
   the staged input and the output on the cleanup pool

Usage:
    with service.transform(upload, params, index=3, original_filename="clip.mov") as outcome:
        if outcome.succeeded:
            stream(outcome.output_path, filename=outcome.download_name)
"""

import logging
import shutil
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Tuple, Union

from .execution.errors import OutputVerificationError
from .execution.pool import CleanupPool, get_cleanup_pool
from .execution.results import ExecutionResult, FailureReason
from .execution.supervisor import ProcessSupervisor
from .media.probe import probe_video_height
from .pipeline.compiler import PipelineCompiler, validate_params
from .pipeline.models import TransformParams, TransformPlan
from .settings import ClipmorphSettings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_INPUT_EXTENSION = ".mp4"
OUTPUT_EXTENSION = ".mp4"

Upload = Union[str, Path, BinaryIO]


@dataclass
class TransformOutcome:
    """Everything the caller needs to respond to one request."""
    result: ExecutionResult
    plan: TransformPlan
    input_path: Path
    output_path: Path
    download_name: str

    @property
    def succeeded(self) -> bool:
        return self.result.succeeded


def input_extension(filename: Optional[str]) -> str:
    """Extension of the uploaded file name, defaulting to .mp4."""
    if not filename:
        return DEFAULT_INPUT_EXTENSION
    return Path(filename).suffix or DEFAULT_INPUT_EXTENSION


def verify_output(output_path: Path) -> None:
    """
    Raises:
        OutputVerificationError: output missing or empty
    """
    if not output_path.is_file():
        raise OutputVerificationError(str(output_path), "Output file was not created")
    if output_path.stat().st_size == 0:
        raise OutputVerificationError(str(output_path), "Output file is empty")


class TransformService:
    """
    Composes compiler, supervisor and cleanup for one request at a time.

    Thread-safe: per-request state lives in local variables and the
    TransformOutcome; shared collaborators are themselves thread-safe.
    """

    def __init__(
        self,
        settings: Optional[ClipmorphSettings] = None,
        compiler: Optional[PipelineCompiler] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        cleanup_pool: Optional[CleanupPool] = None,
    ):
        self._settings = settings if settings is not None else get_settings()
        self._compiler = compiler if compiler is not None else PipelineCompiler(settings=self._settings)
        self._supervisor = supervisor if supervisor is not None else ProcessSupervisor(settings=self._settings)
        self._cleanup_pool = cleanup_pool if cleanup_pool is not None else get_cleanup_pool()

    @property
    def temp_dir(self) -> Path:
        temp_dir = Path(self._settings.temp_dir)
        temp_dir.mkdir(parents=True, exist_ok=True)
        return temp_dir

    def allocate_paths(self, index: int, original_filename: Optional[str]) -> Tuple[Path, Path]:
        """Unique input/output paths: input_<index>_<uuid><ext>, output_<index>_<uuid>.mp4."""
        temp_dir = self.temp_dir
        input_path = temp_dir / f"input_{index}_{uuid.uuid4()}{input_extension(original_filename)}"
        output_path = temp_dir / f"output_{index}_{uuid.uuid4()}{OUTPUT_EXTENSION}"
        return input_path, output_path

    def stage_upload(self, upload: Upload, destination: Path) -> Path:
        """Copy an uploaded file (path or readable binary stream) to destination."""
        if isinstance(upload, (str, Path)):
            shutil.copyfile(upload, destination)
        else:
            with open(destination, "wb") as f:
                shutil.copyfileobj(upload, f)
        logger.debug(f"[Service] Staged upload at {destination}")
        return destination

    @contextmanager
    def transform(
        self,
        upload: Upload,
        params: TransformParams,
        index: int = 0,
        original_filename: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Iterator[TransformOutcome]:
        """
        Run one transform and clean up after the caller is done.

        The output file is valid only inside the with-block; deletion is
        scheduled on exit regardless of outcome.

        Raises:
            InvalidParameterError: speed/pitch invalid (nothing staged or spawned)
            ProbeError / EngineNotAvailableError: aspect set and height unknown
        """
        validate_params(params)

        if original_filename is None and isinstance(upload, (str, Path)):
            original_filename = Path(upload).name

        input_path, output_path = self.allocate_paths(index, original_filename)
        try:
            self.stage_upload(upload, input_path)
            outcome = self._execute(params, input_path, output_path, original_filename, timeout_seconds)
            logger.info(f"[Service] Job {index}: {outcome.result.summary()}")
            yield outcome
        finally:
            self._cleanup_pool.schedule(input_path, output_path)

    def _execute(
        self,
        params: TransformParams,
        input_path: Path,
        output_path: Path,
        original_filename: Optional[str],
        timeout_seconds: Optional[float],
    ) -> TransformOutcome:
        source_height = None
        if params.aspect:
            source_height = probe_video_height(
                input_path,
                ffprobe_path=self._settings.ffprobe_path,
                timeout=self._settings.probe_timeout_seconds,
            )

        plan = self._compiler.compile(params, input_path, output_path, source_height=source_height)
        result = self._supervisor.run(plan, timeout_seconds)

        if result.succeeded:
            try:
                verify_output(output_path)
            except OutputVerificationError as e:
                logger.error(f"[Service] {e}")
                result = result.model_copy(
                    update={
                        "succeeded": False,
                        "failure_reason": FailureReason.OUTPUT_MISSING,
                        "message": e.reason,
                    }
                )

        download_name = f"processed_{original_filename}" if original_filename else f"processed{OUTPUT_EXTENSION}"
        return TransformOutcome(
            result=result,
            plan=plan,
            input_path=input_path,
            output_path=output_path,
            download_name=download_name,
        )
