"""TOML command descriptions and --set overrides."""

from __future__ import annotations

import copy
import tomllib
from pathlib import Path
from typing import Any

from procstream.command import Command
from procstream.errors import ConfigurationError

CONFIG_SUFFIX = ".procstream.toml"


def load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def resolve_config_path(raw: str) -> Path:
    """Resolve a config argument to a file path.

    Accepts a direct path (e.g. "build.toml") or a short name
    (e.g. "build") which expands to "build.procstream.toml".
    """
    path = Path(raw)
    if path.exists():
        return path
    named = Path(f"{raw}{CONFIG_SUFFIX}")
    if named.exists():
        return named
    # Return original so the caller reports the name the user typed
    return path


def apply_overrides(config: dict[str, Any], overrides: list[str]) -> dict[str, Any]:
    """Apply --set key=value overrides using dotted paths."""
    config = copy.deepcopy(config)
    for override in overrides:
        key, _, value = override.partition("=")
        if not value:
            raise ValueError(f"Invalid override (missing '='): {override}")

        parts = key.strip().split(".")
        target = config
        for part in parts[:-1]:
            target = target.setdefault(part, {})

        target[parts[-1]] = parse_value(value.strip())

    return config


def parse_value(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _select_profile(
    section: dict[str, Any], profile_name: str | None
) -> dict[str, Any]:
    """Select a profile from a section, layered over the section's own keys."""
    base = {k: v for k, v in section.items() if k != "profile"}
    profiles = section.get("profile")
    if not profiles:
        if profile_name:
            raise ConfigurationError(
                f"Profile '{profile_name}' requested but no profiles are defined"
            )
        return base

    if profile_name:
        if profile_name not in profiles:
            raise ConfigurationError(
                f"Unknown profile '{profile_name}'; "
                f"available: {', '.join(sorted(profiles))}"
            )
        selected = profiles[profile_name]
    elif "default" in profiles:
        selected = profiles["default"]
    else:
        selected = profiles[next(iter(profiles))]

    merged = dict(base)
    for key, value in selected.items():
        if key == "env" and isinstance(value, dict):
            merged["env"] = {**base.get("env", {}), **value}
        else:
            merged[key] = value
    return merged


def build_command(
    config: dict[str, Any],
    *,
    profile: str | None = None,
    base_dir: Path | None = None,
) -> Command:
    """Build a Command from the ``[command]`` section of a parsed config.

    Relative ``workdir`` values are taken relative to *base_dir*, normally
    the directory holding the config file.
    """
    section = config.get("command")
    if not isinstance(section, dict):
        raise ConfigurationError("config needs a [command] section")
    selected = _select_profile(section, profile)

    program = selected.get("program")
    if not program:
        raise ConfigurationError("command.program is required")
    args = selected.get("args", [])
    if not isinstance(args, list):
        raise ConfigurationError("command.args must be a list")

    workdir = selected.get("workdir")
    if workdir is not None:
        workdir = Path(workdir)
        if base_dir and not workdir.is_absolute():
            workdir = base_dir / workdir

    env = selected.get("env", {})
    if not isinstance(env, dict):
        raise ConfigurationError("command.env must be a table")

    return Command(
        argv=(program, *args),
        workdir=workdir,
        env=env,
        timeout=selected.get("timeout"),
        notify=selected.get("notify"),
        encoding=selected.get("encoding", "utf-8"),
        errors=selected.get("errors", "replace"),
    )
