#!/usr/bin/env python3
"""
clipmorph CLI - Thin entrypoint for operator commands.

Commands:
- plan:      Compile parameters and print the FFmpeg command (no execution)
- transform: Run a full transform and copy the result to OUTPUT

Design Principles:
==================
- CLI is a dispatcher only
- No execution logic inside CLI
- Surface errors verbatim from the pipeline and execution layers
- Exit non-zero on failure

Exit Codes:
===========
- 0: Success
- 1: Invalid parameters
- 2: Execution error
- 3: Timed out
- 4: System error (file not found, probe failure, missing binaries)
"""

import argparse
import json
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional

from .execution.errors import EngineNotAvailableError
from .execution.ffmpeg import build_ffmpeg_command, find_ffmpeg, format_command
from .media.probe import ProbeError, probe_video_height
from .pipeline.compiler import PipelineCompiler, validate_params
from .pipeline.errors import InvalidParameterError
from .pipeline.models import TransformParams
from .pipeline.randomness import SharedRandom
from .service import TransformService
from .settings import ClipmorphSettings, SettingsError

EXIT_OK = 0
EXIT_INVALID_PARAMS = 1
EXIT_EXECUTION_ERROR = 2
EXIT_TIMEOUT = 3
EXIT_SYSTEM_ERROR = 4

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _params_from_args(args: argparse.Namespace) -> TransformParams:
    return TransformParams.from_dict(vars(args))


def _compiler_for(args: argparse.Namespace, settings: ClipmorphSettings) -> PipelineCompiler:
    rng = SharedRandom(seed=args.seed) if args.seed is not None else None
    return PipelineCompiler(rng=rng, settings=settings)


def cmd_plan(args: argparse.Namespace, settings: ClipmorphSettings) -> int:
    """
    Compile and print the FFmpeg command without running it.

    Exit codes:
        0: Plan printed
        1: Invalid parameters
        4: Source height could not be probed
    """
    params = _params_from_args(args)
    try:
        validate_params(params)
    except InvalidParameterError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_INVALID_PARAMS

    source_height = args.source_height
    if params.aspect and source_height is None:
        try:
            source_height = probe_video_height(
                args.input,
                ffprobe_path=settings.ffprobe_path,
                timeout=settings.probe_timeout_seconds,
            )
        except (ProbeError, EngineNotAvailableError) as e:
            print(f"ERROR: {e} (pass --source-height to skip probing)", file=sys.stderr)
            return EXIT_SYSTEM_ERROR

    try:
        plan = _compiler_for(args, settings).compile(
            params, args.input, args.output, source_height=source_height
        )
    except InvalidParameterError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_INVALID_PARAMS

    if args.json:
        print(json.dumps(plan.to_dict(), indent=2))
    else:
        ffmpeg = find_ffmpeg(settings.ffmpeg_path) or settings.ffmpeg_path or "ffmpeg"
        print(format_command(build_ffmpeg_command(plan, ffmpeg)))
    return EXIT_OK


def cmd_transform(args: argparse.Namespace, settings: ClipmorphSettings) -> int:
    """
    Run one transform and copy the output to the destination.

    Exit codes:
        0: Output written
        1: Invalid parameters
        2: FFmpeg failed (spawn, non-zero exit, missing output)
        3: Timed out
        4: Input missing or probe failure
    """
    source = Path(args.input)
    if not source.is_file():
        print(f"ERROR: Input file not found: {source}", file=sys.stderr)
        return EXIT_SYSTEM_ERROR

    params = _params_from_args(args)
    service = TransformService(settings=settings, compiler=_compiler_for(args, settings))

    try:
        with service.transform(source, params, timeout_seconds=args.timeout) as outcome:
            result = outcome.result
            if result.succeeded:
                destination = Path(args.output)
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(outcome.output_path, destination)
                print(f"✓ {result.summary()}: {destination}")
                return EXIT_OK

            print(f"✗ {result.summary()}", file=sys.stderr)
            for line in result.diagnostics[-10:]:
                print(f"  {line}", file=sys.stderr)
            return EXIT_TIMEOUT if result.timed_out else EXIT_EXECUTION_ERROR
    except InvalidParameterError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_INVALID_PARAMS
    except (ProbeError, EngineNotAvailableError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_SYSTEM_ERROR


def _add_transform_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('input', help='Source media file')
    parser.add_argument('output', help='Destination file')
    parser.add_argument('--speed', type=float, default=1.0, help='Playback speed factor (default: 1.0)')
    parser.add_argument('--pitch', type=float, default=1.0, help='Pitch factor (default: 1.0)')
    parser.add_argument('--watermark', action='store_true', help='Overlay a text watermark')
    parser.add_argument('--filters', action='store_true', help='Randomized color/contrast filters')
    parser.add_argument('--aspect', action='store_true', help='Randomized height rescale')
    parser.add_argument('--random-cuts', action='store_true', help='Random input trim (with an analysis toggle)')
    parser.add_argument('--audio-mix', action='store_true', help='Add an echo to the audio')
    parser.add_argument('--ai-detection', action='store_true', help='Randomized crop and hue')
    parser.add_argument('--auto-edit', action='store_true', help='Randomized crop and hue')
    parser.add_argument('--content-analysis', action='store_true', help='Randomized crop and hue')
    parser.add_argument('--seed', type=int, default=None, help='Fixed random seed for a reproducible plan')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='clipmorph',
        description='clipmorph - FFmpeg-driven media transforms',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', required=True, help='Command to execute')

    # Plan command
    parser_plan = subparsers.add_parser(
        'plan',
        help='Print the FFmpeg command for the given parameters without running it'
    )
    _add_transform_arguments(parser_plan)
    parser_plan.add_argument(
        '--source-height',
        type=int,
        default=None,
        help='Source height in pixels for --aspect (default: probe INPUT)'
    )
    parser_plan.add_argument('--json', action='store_true', help='Print the plan as JSON')
    parser_plan.set_defaults(func=cmd_plan)

    # Transform command
    parser_transform = subparsers.add_parser(
        'transform',
        help='Transform INPUT and write the result to OUTPUT'
    )
    _add_transform_arguments(parser_transform)
    parser_transform.add_argument(
        '--timeout',
        type=float,
        default=None,
        help='Timeout in seconds (default: CLIPMORPH_TIMEOUT_SECONDS or 300)'
    )
    parser_transform.set_defaults(func=cmd_transform)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entrypoint.

    Parses arguments and dispatches to subcommands.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        settings = ClipmorphSettings.from_env()
    except SettingsError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_SYSTEM_ERROR

    return args.func(args, settings)


if __name__ == '__main__':
    sys.exit(main())
