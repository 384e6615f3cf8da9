"""Errors raised while launching and supervising a child process."""

from __future__ import annotations


class ProcstreamError(Exception):
    """Base class for all procstream errors."""


class CommandUnavailable(ProcstreamError):
    """The program could not be resolved to an executable file."""

    def __init__(self, file: str, platform: str):
        super().__init__(f"Command '{file}' is not available on {platform}")
        self.file = file
        self.platform = platform


class LaunchError(ProcstreamError):
    """The child process failed to start."""


class TimeoutExceeded(ProcstreamError):
    """The child did not finish before its deadline.

    The process is left running; use ``pid`` to terminate it.
    """

    def __init__(self, pid: int):
        super().__init__(f"Process {pid} exceeded its timeout")
        self.pid = pid


class ConfigurationError(ProcstreamError, ValueError):
    """Invalid execution options, detected before anything is spawned."""
