"""Programmatic API — run commands described by TOML configs."""

from __future__ import annotations

import copy
import dataclasses
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from procstream.command import Command
from procstream.config import build_command, load_toml
from procstream.result import Result
from procstream.subprocess import Callback, Subprocess


def apply_dict_overrides(
    config: dict[str, Any], overrides: dict[str, Any]
) -> dict[str, Any]:
    """Deep-merge *overrides* into *config*, returning a new dict."""
    config = copy.deepcopy(config)
    _deep_merge(config, overrides)
    return config


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> None:
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def load_command(
    config: str | Path | dict[str, Any],
    *,
    overrides: dict[str, Any] | None = None,
    profile: str | None = None,
) -> Command:
    """Load a config (path or dict) and build its Command."""
    base_dir = None
    if isinstance(config, (str, Path)):
        path = Path(config)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        loaded = load_toml(path)
        base_dir = path.resolve().parent
    elif isinstance(config, dict):
        loaded = copy.deepcopy(config)
    else:
        raise TypeError(
            f"config must be a str, Path, or dict, got {type(config).__name__}"
        )

    if overrides:
        loaded = apply_dict_overrides(loaded, overrides)

    return build_command(loaded, profile=profile, base_dir=base_dir)


def run(
    config: str | Path | dict[str, Any],
    *,
    overrides: dict[str, Any] | None = None,
    profile: str | None = None,
    notify: str | Iterable[str] | None = None,
    callback: Callback | None = None,
    logger: logging.Logger | None = None,
) -> Result:
    """Run the command described by *config* and return its Result.

    Args:
        config: Path to a TOML config file (str or Path), or a pre-loaded
            config dict with a ``command`` section.
        overrides: Nested dict of config overrides, deep-merged into config.
            Example: ``{"command": {"timeout": 5}}``
        profile: Name of the command profile to select.
        notify: Streams to subscribe *callback* to. Replaces the config's
            ``notify`` when given.
        callback: Called with ``(stream, payload)`` for subscribed events.
        logger: Logger for process lifecycle messages.

    Raises:
        FileNotFoundError: If config is a path that does not exist.
        TypeError: If config is not a str, Path, or dict.
        ConfigurationError: If the command section is invalid, or a
            callback is given without subscriptions.
        CommandUnavailable, LaunchError, TimeoutExceeded: see
            :meth:`procstream.Subprocess.execute`.
    """
    command = load_command(config, overrides=overrides, profile=profile)
    if notify is not None:
        command = dataclasses.replace(command, notify=notify)
    return Subprocess.from_command(command, logger=logger).execute(callback)
