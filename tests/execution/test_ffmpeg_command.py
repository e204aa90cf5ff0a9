"""
FFmpeg command layer — Unit Tests

Plan → argv serialization and binary discovery.
"""

import os
import shlex
import stat

import pytest
from unittest.mock import patch

from clipmorph.execution.ffmpeg import (
    build_ffmpeg_command,
    find_binary,
    find_ffmpeg,
    format_command,
)
from clipmorph.pipeline import TransformPlan, TrimDirective


def _plan(trim=None):
    return TransformPlan(
        input_path="/media/in put.mov",
        output_path="/media/out.mp4",
        video_filters=("setpts=0.5*PTS", "crop=iw-4:ih-9"),
        audio_filters=("atempo=2.0", "asetrate=44100*1.0"),
        trim=trim,
        output_options=("-c:v", "libx264", "-preset", "fast"),
    )


class TestBuildCommand:

    def test_layout_without_trim(self):
        cmd = build_ffmpeg_command(_plan(), "/usr/bin/ffmpeg")

        assert cmd == [
            "/usr/bin/ffmpeg", "-y",
            "-i", "/media/in put.mov",
            "-vf", "setpts=0.5*PTS,crop=iw-4:ih-9",
            "-af", "atempo=2.0,asetrate=44100*1.0",
            "-c:v", "libx264", "-preset", "fast",
            "/media/out.mp4",
        ]

    def test_trim_precedes_input(self):
        cmd = build_ffmpeg_command(_plan(TrimDirective(3, 25)))

        assert cmd[:7] == ["ffmpeg", "-y", "-ss", "3", "-t", "25", "-i"]

    def test_output_path_is_last(self):
        assert build_ffmpeg_command(_plan())[-1] == "/media/out.mp4"

    def test_format_command_round_trips(self):
        cmd = build_ffmpeg_command(_plan())
        rendered = format_command(cmd)

        assert "'/media/in put.mov'" in rendered
        assert shlex.split(rendered) == cmd


class TestFindBinary:

    def test_configured_executable_wins(self, tmp_path):
        binary = tmp_path / "ffmpeg"
        binary.write_text("#!/bin/sh\n")
        binary.chmod(binary.stat().st_mode | stat.S_IXUSR)

        assert find_ffmpeg(str(binary)) == str(binary)

    def test_configured_missing_returns_none(self, tmp_path):
        assert find_binary("ffmpeg", str(tmp_path / "nope")) is None

    def test_path_lookup(self):
        with patch("clipmorph.execution.ffmpeg.shutil.which", return_value="/somewhere/ffmpeg"):
            assert find_ffmpeg() == "/somewhere/ffmpeg"

    def test_not_found_anywhere(self):
        with patch("clipmorph.execution.ffmpeg.shutil.which", return_value=None), \
             patch("clipmorph.execution.ffmpeg.os.path.isfile", return_value=False):
            assert find_ffmpeg() is None

    @pytest.mark.skipif(os.name != "posix", reason="common install dirs are POSIX paths")
    def test_common_location_fallback(self):
        def fake_isfile(path):
            return path == "/opt/homebrew/bin/ffmpeg"

        with patch("clipmorph.execution.ffmpeg.shutil.which", return_value=None), \
             patch("clipmorph.execution.ffmpeg.os.path.isfile", side_effect=fake_isfile), \
             patch("clipmorph.execution.ffmpeg.os.access", return_value=True):
            assert find_ffmpeg() == "/opt/homebrew/bin/ffmpeg"
