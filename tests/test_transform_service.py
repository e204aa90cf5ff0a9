"""
Transform Service — Integration Tests

Runs the whole request flow against a fake FFmpeg script so staging,
output verification and cleanup are exercised without real media.
"""

import io
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import write_fake_ffmpeg
from clipmorph.execution import FailureReason, ProcessSupervisor
from clipmorph.execution.errors import OutputVerificationError
from clipmorph.pipeline import InvalidParameterError, SharedRandom, TransformParams
from clipmorph.pipeline.compiler import PipelineCompiler
from clipmorph.service import TransformService, input_extension, verify_output


def _service(settings, worker_pool, cleanup_pool, ffmpeg_path):
    configured = settings.with_overrides(ffmpeg_path=str(ffmpeg_path))
    return TransformService(
        settings=configured,
        compiler=PipelineCompiler(rng=SharedRandom(seed=5), settings=configured),
        supervisor=ProcessSupervisor(pool=worker_pool, settings=configured),
        cleanup_pool=cleanup_pool,
    )


@pytest.fixture
def upload(tmp_path):
    path = tmp_path / "holiday.mov"
    path.write_bytes(b"\x00" * 1024)
    return path


def _work_files(settings):
    work = Path(settings.temp_dir)
    return sorted(p.name for p in work.iterdir()) if work.exists() else []


@pytest.mark.skipif(os.name != "posix", reason="fake ffmpeg relies on a shebang script")
class TestTransformFlow:

    def test_success_and_cleanup(self, settings, worker_pool, cleanup_pool, fake_ffmpeg, upload):
        service = _service(settings, worker_pool, cleanup_pool, fake_ffmpeg)

        with service.transform(upload, TransformParams(speed=1.5, watermark=True), index=7) as outcome:
            assert outcome.succeeded
            assert outcome.output_path.stat().st_size == 256
            assert outcome.input_path.name.startswith("input_7_")
            assert outcome.input_path.suffix == ".mov"
            assert outcome.output_path.name.startswith("output_7_")
            assert outcome.output_path.suffix == ".mp4"
            assert outcome.download_name == "processed_holiday.mov"
            assert outcome.plan.video_filters[0] == "setpts=0.6666666666666666*PTS"
            staged = (outcome.input_path, outcome.output_path)

        cleanup_pool.shutdown(wait=True)
        assert not any(p.exists() for p in staged)
        assert upload.exists()

    def test_non_zero_exit(self, settings, worker_pool, cleanup_pool, tmp_path, upload):
        failing = write_fake_ffmpeg(_bin_dir(tmp_path), exit_code=1)
        service = _service(settings, worker_pool, cleanup_pool, failing)

        with service.transform(upload, TransformParams()) as outcome:
            assert not outcome.succeeded
            assert outcome.result.exit_code == 1
            assert outcome.result.failure_reason == FailureReason.NON_ZERO_EXIT
            assert outcome.result.diagnostics[0].startswith("fake-ffmpeg -y -i ")

        cleanup_pool.shutdown(wait=True)
        assert _work_files(settings) == []

    def test_missing_output_is_failure(self, settings, worker_pool, cleanup_pool, tmp_path, upload):
        silent = write_fake_ffmpeg(_bin_dir(tmp_path), skip_output=True)
        service = _service(settings, worker_pool, cleanup_pool, silent)

        with service.transform(upload, TransformParams()) as outcome:
            assert not outcome.succeeded
            assert outcome.result.exit_code == 0
            assert outcome.result.failure_reason == FailureReason.OUTPUT_MISSING
            assert outcome.result.message == "Output file was not created"

    def test_invalid_params_stage_nothing(self, settings, worker_pool, cleanup_pool, fake_ffmpeg, upload):
        service = _service(settings, worker_pool, cleanup_pool, fake_ffmpeg)

        with pytest.raises(InvalidParameterError) as exc_info:
            with service.transform(upload, TransformParams(speed=0)):
                pass

        assert exc_info.value.name == "speed"
        assert _work_files(settings) == []

    def test_exception_in_block_still_cleans_up(self, settings, worker_pool, cleanup_pool, fake_ffmpeg, upload):
        service = _service(settings, worker_pool, cleanup_pool, fake_ffmpeg)

        with pytest.raises(RuntimeError):
            with service.transform(upload, TransformParams()) as outcome:
                assert outcome.output_path.exists()
                raise RuntimeError("client disconnected")

        cleanup_pool.shutdown(wait=True)
        assert _work_files(settings) == []

    def test_aspect_probes_source_height(self, settings, worker_pool, cleanup_pool, fake_ffmpeg, upload):
        service = _service(settings, worker_pool, cleanup_pool, fake_ffmpeg)

        with patch("clipmorph.service.probe_video_height", return_value=720) as probe:
            with service.transform(upload, TransformParams(aspect=True)) as outcome:
                assert outcome.succeeded
                scale = [f for f in outcome.plan.video_filters if f.startswith("scale=")]

        probe.assert_called_once()
        assert len(scale) == 1
        height = int(scale[0].split(":")[1])
        assert 576 <= height <= 864

    def test_stream_upload(self, settings, worker_pool, cleanup_pool, fake_ffmpeg):
        service = _service(settings, worker_pool, cleanup_pool, fake_ffmpeg)
        stream = io.BytesIO(b"\x00" * 512)

        with service.transform(stream, TransformParams(), index=2, original_filename="clip.webm") as outcome:
            assert outcome.succeeded
            assert outcome.input_path.suffix == ".webm"
            assert outcome.input_path.stat().st_size == 512
            assert outcome.download_name == "processed_clip.webm"

    def test_stream_upload_without_name(self, settings, worker_pool, cleanup_pool, fake_ffmpeg):
        service = _service(settings, worker_pool, cleanup_pool, fake_ffmpeg)

        with service.transform(io.BytesIO(b"\x00" * 16), TransformParams()) as outcome:
            assert outcome.input_path.suffix == ".mp4"
            assert outcome.download_name == "processed.mp4"

    def test_concurrent_requests_use_distinct_paths(self, settings, worker_pool, cleanup_pool, fake_ffmpeg, upload):
        service = _service(settings, worker_pool, cleanup_pool, fake_ffmpeg)

        with service.transform(upload, TransformParams(), index=1) as first, \
             service.transform(upload, TransformParams(), index=1) as second:
            assert first.input_path != second.input_path
            assert first.output_path != second.output_path
            assert first.succeeded and second.succeeded

    @pytest.mark.slow
    def test_timeout_cleans_up(self, settings, worker_pool, cleanup_pool, tmp_path, upload):
        sleeper = _bin_dir(tmp_path) / "ffmpeg"
        sleeper.write_text(f"#!{sys.executable}\nimport time\ntime.sleep(60)\n")
        sleeper.chmod(0o755)
        service = _service(settings, worker_pool, cleanup_pool, sleeper)

        with service.transform(upload, TransformParams(), timeout_seconds=0.5) as outcome:
            assert not outcome.succeeded
            assert outcome.result.timed_out is True
            assert outcome.result.failure_reason == FailureReason.TIMED_OUT

        cleanup_pool.shutdown(wait=True)
        assert _work_files(settings) == []
        assert worker_pool.held_slots == 0

    def test_spawn_failure_cleans_up(self, settings, worker_pool, cleanup_pool, tmp_path, upload):
        service = _service(settings, worker_pool, cleanup_pool, tmp_path / "no-such-ffmpeg")

        with service.transform(upload, TransformParams()) as outcome:
            assert not outcome.succeeded
            assert outcome.result.timed_out is False
            assert outcome.result.failure_reason == FailureReason.SPAWN_FAILED
            assert outcome.input_path.exists()

        cleanup_pool.shutdown(wait=True)
        assert _work_files(settings) == []


def _bin_dir(tmp_path):
    path = tmp_path / "bin-alt"
    path.mkdir(exist_ok=True)
    return path


class TestHelpers:

    @pytest.mark.parametrize("filename,expected", [
        ("clip.mov", ".mov"),
        ("archive.tar.gz", ".gz"),
        ("noext", ".mp4"),
        ("", ".mp4"),
        (None, ".mp4"),
    ])
    def test_input_extension(self, filename, expected):
        assert input_extension(filename) == expected

    def test_verify_output_missing(self, tmp_path):
        with pytest.raises(OutputVerificationError) as exc_info:
            verify_output(tmp_path / "absent.mp4")

        assert exc_info.value.reason == "Output file was not created"

    def test_verify_output_empty(self, tmp_path):
        empty = tmp_path / "empty.mp4"
        empty.touch()

        with pytest.raises(OutputVerificationError) as exc_info:
            verify_output(empty)

        assert exc_info.value.reason == "Output file is empty"
