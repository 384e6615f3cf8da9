"""CLI entry point — procstream run / procstream exec."""

from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import Any

from procstream.command import Command
from procstream.config import (
    apply_overrides,
    build_command,
    load_toml,
    resolve_config_path,
)
from procstream.errors import (
    CommandUnavailable,
    ConfigurationError,
    LaunchError,
    TimeoutExceeded,
)
from procstream.logging import get_logger, setup_logging
from procstream.subprocess import Subprocess

EXIT_CONFIG_ERROR = 2
EXIT_TIMEOUT = 124
EXIT_LAUNCH_ERROR = 126
EXIT_UNAVAILABLE = 127

logger = get_logger(__name__)


class _Streamer:
    """Callback that mirrors child output onto our own stdout/stderr."""

    def __init__(self, stdin_data: str | None, encoding: str):
        self._pending = stdin_data.encode(encoding) if stdin_data is not None else None

    def __call__(self, stream: str, payload: Any) -> None:
        if stream == "stdout":
            sys.stdout.write(payload)
            sys.stdout.flush()
        elif stream == "stderr":
            sys.stderr.write(payload)
            sys.stderr.flush()
        elif stream == "stdin":
            if self._pending:
                payload.write(self._pending)
            self._pending = None
            payload.close()


def _parse_env(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(
            f"Invalid env format: {value!r}. Expected 'NAME=value'."
        )
    return key, val


def _add_execution_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Fail if the command runs longer than this many seconds",
    )
    parser.add_argument(
        "--workdir",
        type=str,
        default=None,
        help="Working directory for the command",
    )
    parser.add_argument(
        "--env",
        type=_parse_env,
        action="append",
        default=[],
        help="Environment override (e.g. --env DEBUG=1). Can be repeated.",
    )
    parser.add_argument(
        "--input",
        dest="stdin_data",
        default=None,
        help="Text to write to the command's stdin",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level for procstream's own messages (e.g. INFO, DEBUG)",
    )


_SUBCOMMANDS = {"run", "exec"}


def main(argv: list[str] | None = None) -> int:
    # Default command: treat bare `procstream <config> ...` as `procstream run <config> ...`
    effective = argv if argv is not None else sys.argv[1:]
    if effective and effective[0] not in _SUBCOMMANDS and not effective[0].startswith("-"):
        effective = ["run", *effective]

    parser = argparse.ArgumentParser(
        prog="procstream", description="Run a command and stream its output"
    )
    sub = parser.add_subparsers(dest="command")

    run_parser = sub.add_parser("run", help="Run a command from a TOML config")
    run_parser.add_argument(
        "config",
        type=resolve_config_path,
        help="Config file or name ([name].procstream.toml)",
    )
    run_parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        help="Override config values (e.g. --set command.timeout=5)",
    )
    run_parser.add_argument(
        "--profile",
        default=None,
        help="Select a command profile (e.g. --profile ci)",
    )
    _add_execution_arguments(run_parser)

    exec_parser = sub.add_parser("exec", help="Run a command given on the command line")
    exec_parser.add_argument("argv", nargs=argparse.REMAINDER, help="-- program [args...]")
    _add_execution_arguments(exec_parser)

    args = parser.parse_args(effective)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.log_level)

    try:
        command = _build_command(args)
    except (ConfigurationError, ValueError, FileNotFoundError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    return _execute(command, args.stdin_data)


def _build_command(args: argparse.Namespace) -> Command:
    if args.command == "run":
        config_path: Path = args.config
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        config = load_toml(config_path)
        if args.overrides:
            config = apply_overrides(config, args.overrides)
        command = build_command(
            config, profile=args.profile, base_dir=config_path.resolve().parent
        )
    else:
        argv = list(args.argv)
        if argv and argv[0] == "--":
            argv = argv[1:]
        command = Command(argv=tuple(argv))

    changes: dict[str, Any] = {}
    if args.timeout is not None:
        changes["timeout"] = args.timeout
    if args.workdir is not None:
        changes["workdir"] = args.workdir
    if args.env:
        changes["env"] = {**command.env, **dict(args.env)}
    # stdin is always offered so the streamer can close it; otherwise a
    # child reading stdin would wait forever.
    changes["notify"] = {"stdout", "stderr", "stdin"}
    return dataclasses.replace(command, **changes)


def _execute(command: Command, stdin_data: str | None) -> int:
    try:
        proc = Subprocess.from_command(command)
        result = proc.execute(_Streamer(stdin_data, command.encoding))
    except CommandUnavailable as e:
        print(f"Command unavailable: {e}", file=sys.stderr)
        return EXIT_UNAVAILABLE
    except LaunchError as e:
        print(f"Failed to launch {command.program}: {e}", file=sys.stderr)
        return EXIT_LAUNCH_ERROR
    except TimeoutExceeded as e:
        print(
            f"TIMEOUT: {command.program} exceeded {command.timeout}s "
            f"(pid {e.pid} is still running)",
            file=sys.stderr,
        )
        return EXIT_TIMEOUT

    logger.info("%s exited with status %s", command.program, result.exit_code)
    if result.exit_code < 0:
        # Killed by a signal; report it the way shells do.
        return 128 - result.exit_code
    return result.exit_code
