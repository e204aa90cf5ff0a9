"""
Pytest configuration and shared fixtures.
"""

import os
import stat
import sys
from pathlib import Path
from typing import List

import pytest

from clipmorph.execution.pool import CleanupPool, WorkerPool
from clipmorph.settings import ClipmorphSettings


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests that spawn long-running child processes"
    )
    config.addinivalue_line(
        "markers", "posix: marks tests that rely on POSIX signals or shebang scripts"
    )


def python_command(code: str) -> List[str]:
    """argv that runs `code` in a fresh interpreter."""
    return [sys.executable, "-c", code]


# Fake FFmpeg: echoes its argv to stderr and writes a small output file
# at the last argument. FAKE_FFMPEG_EXIT overrides the exit code.
FAKE_FFMPEG_SOURCE = """#!{python}
import os
import sys

args = sys.argv[1:]
sys.stderr.write("fake-ffmpeg " + " ".join(args) + "\\n")
exit_code = int(os.environ.get("FAKE_FFMPEG_EXIT", "{exit_code}"))
if exit_code == 0 and not {skip_output}:
    with open(args[-1], "wb") as f:
        f.write(b"\\x00" * 256)
sys.exit(exit_code)
"""


def write_fake_ffmpeg(directory: Path, exit_code: int = 0, skip_output: bool = False) -> Path:
    script = directory / "ffmpeg"
    script.write_text(
        FAKE_FFMPEG_SOURCE.format(
            python=sys.executable,
            exit_code=exit_code,
            skip_output=skip_output,
        )
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def settings(tmp_path):
    """Settings with short timeouts and an isolated temp directory."""
    return ClipmorphSettings(
        temp_dir=str(tmp_path / "work"),
        timeout_seconds=20.0,
        terminate_grace_seconds=2.0,
        drain_join_seconds=2.0,
    )


@pytest.fixture
def worker_pool():
    pool = WorkerPool(max_jobs=4)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def cleanup_pool():
    pool = CleanupPool(max_workers=2)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def fake_ffmpeg(tmp_path):
    if os.name != "posix":
        pytest.skip("fake ffmpeg relies on a shebang script")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    return write_fake_ffmpeg(bin_dir)
