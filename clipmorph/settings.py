"""
ClipmorphSettings — runtime configuration for compile and execution.

One immutable object carries every tunable the pipeline needs:
- Binary locations (ffmpeg / ffprobe)
- Concurrency limits (job slots, cleanup workers)
- Timeouts (job, slot wait, terminate grace, drain join, probe)
- Output encoding options

Defaults match production behavior. Overrides come from CLIPMORPH_*
environment variables via ClipmorphSettings.from_env().
"""

import os
import threading
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple


ENV_PREFIX = "CLIPMORPH_"


class SettingsError(Exception):
    """Raised when a configuration value cannot be parsed or is out of range."""

    def __init__(self, name: str, value: Any, reason: str):
        self.name = name
        self.value = value
        super().__init__(f"Invalid setting {name}={value!r}: {reason}")


@dataclass(frozen=True)
class ClipmorphSettings:
    """
    Complete, immutable runtime configuration.

    frozen=True: settings are shared across threads and never mutated.
    Use dataclasses.replace() (or with_overrides) to derive variants.
    """

    # Binaries (None = discover on PATH)
    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None

    # Working directory for staged inputs and outputs
    temp_dir: str = "temp_videos"

    # Concurrency
    max_concurrent_jobs: int = 4
    cleanup_workers: int = 2

    # Timeouts (seconds)
    timeout_seconds: float = 300.0
    slot_timeout_seconds: Optional[float] = None
    terminate_grace_seconds: float = 5.0
    drain_join_seconds: float = 2.0
    probe_timeout_seconds: float = 10.0

    # Diagnostics
    diagnostic_tail_lines: int = 50

    # Filter constants
    base_sample_rate: int = 44100
    watermark_text: str = "UserContent"

    # Output encoding
    video_codec: str = "libx264"
    quality_preset: str = "fast"
    crf: int = 23
    audio_codec: str = "aac"

    def __post_init__(self):
        if self.max_concurrent_jobs < 1:
            raise SettingsError("max_concurrent_jobs", self.max_concurrent_jobs, "must be >= 1")
        if self.cleanup_workers < 1:
            raise SettingsError("cleanup_workers", self.cleanup_workers, "must be >= 1")
        if self.timeout_seconds <= 0:
            raise SettingsError("timeout_seconds", self.timeout_seconds, "must be positive")
        if self.slot_timeout_seconds is not None and self.slot_timeout_seconds <= 0:
            raise SettingsError("slot_timeout_seconds", self.slot_timeout_seconds, "must be positive")
        if self.base_sample_rate <= 0:
            raise SettingsError("base_sample_rate", self.base_sample_rate, "must be positive")
        if self.diagnostic_tail_lines < 0:
            raise SettingsError("diagnostic_tail_lines", self.diagnostic_tail_lines, "must be >= 0")

    def output_options(self) -> Tuple[str, ...]:
        """Encoding arguments appended after the filter chains."""
        return (
            "-c:v", self.video_codec,
            "-preset", self.quality_preset,
            "-crf", str(self.crf),
            "-c:a", self.audio_codec,
            "-strict", "experimental",
        )

    def with_overrides(self, **overrides: Any) -> "ClipmorphSettings":
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClipmorphSettings":
        """
        Build settings from CLIPMORPH_* environment variables.

        Variable names are the upper-cased field names, e.g.
        CLIPMORPH_MAX_CONCURRENT_JOBS=8. Unset variables keep defaults.
        An empty value for an optional field resets it to None.

        Raises:
            SettingsError: If a value does not parse as the field's type
        """
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}

        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key not in environ:
                continue
            overrides[f.name] = _parse_value(f.name, environ[key], f.default)

        return cls(**overrides)


def _parse_value(name: str, raw: str, default: Any) -> Any:
    """Coerce an environment string to the type implied by the field default."""
    raw = raw.strip()

    # Optional fields default to None; their concrete type is inferred per field
    if default is None:
        if raw == "":
            return None
        if name.endswith("_seconds"):
            return _parse_number(name, raw, float)
        return raw

    if isinstance(default, int):
        return _parse_number(name, raw, int)

    if isinstance(default, float):
        return _parse_number(name, raw, float)

    return raw


def _parse_number(name: str, raw: str, kind: type) -> Any:
    try:
        return kind(raw)
    except ValueError:
        raise SettingsError(name, raw, f"expected {kind.__name__}") from None


# Global settings instance
_default_settings: Optional[ClipmorphSettings] = None
_settings_lock = threading.Lock()


def get_settings() -> ClipmorphSettings:
    """
    Get the process-wide settings.

    Read from the environment on first access (lazy initialization).
    """
    global _default_settings
    with _settings_lock:
        if _default_settings is None:
            _default_settings = ClipmorphSettings.from_env()
        return _default_settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _default_settings
    with _settings_lock:
        _default_settings = None
