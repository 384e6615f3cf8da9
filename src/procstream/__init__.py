"""procstream — run a child process and stream its output as it arrives."""

__version__ = "0.1.0"

from procstream.api import run
from procstream.command import Command
from procstream.errors import (
    CommandUnavailable,
    ConfigurationError,
    LaunchError,
    ProcstreamError,
    TimeoutExceeded,
)
from procstream.result import Result
from procstream.subprocess import Subprocess, execute

__all__ = [
    "Command",
    "CommandUnavailable",
    "ConfigurationError",
    "LaunchError",
    "ProcstreamError",
    "Result",
    "Subprocess",
    "TimeoutExceeded",
    "execute",
    "run",
]
