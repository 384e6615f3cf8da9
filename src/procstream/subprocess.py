"""Subprocess — run a child process, streaming its output as it arrives.

Output is gathered by a single readiness loop over the child's stdout and
stderr pipes, so neither pipe can fill up and stall the child while we are
blocked reading the other one. Callers that want to see output in real time
(or feed the child's stdin) pass a callback and subscribe to the streams
they care about::

    def on_event(stream, payload):
        if stream == "stdout":
            print(payload, end="")

    result = execute("make", "all", notify=["stdout"], callback=on_event)
"""

from __future__ import annotations

import codecs
import logging
import os
import platform
import selectors
import subprocess
import time
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import IO, Any

from procstream.command import Command
from procstream.errors import (
    CommandUnavailable,
    ConfigurationError,
    LaunchError,
    TimeoutExceeded,
)
from procstream.installer import InstallerContext
from procstream.io import read_until_block, set_nonblocking
from procstream.result import Result
from procstream.safe_chdir import safe_chdir
from procstream.which import which

Callback = Callable[[str, Any], object]

POLL_INTERVAL = 0.1
# Upper bound on the exit wait when no timeout was configured.
DEFAULT_REAP_TIMEOUT = 32000


class _Accumulator:
    """Decoded, append-only record of one output stream."""

    def __init__(self, encoding: str, errors: str):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors=errors)
        self._chunks: list[str] = []

    def feed(self, data: bytes, *, final: bool = False) -> str:
        text = self._decoder.decode(data, final)
        if text:
            self._chunks.append(text)
        return text

    def getvalue(self) -> str:
        return "".join(self._chunks)


class Subprocess:
    """A command ready to be executed.

    The program is resolved when the object is built, so a missing
    executable is reported before anything is started.
    """

    def __init__(
        self,
        *command: str,
        timeout: float | None = None,
        workdir: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        notify: str | Iterable[str] | None = None,
        encoding: str = "utf-8",
        errors: str = "replace",
        logger: logging.Logger | None = None,
        installer: InstallerContext | None = None,
    ):
        self.command = Command(
            argv=command,
            workdir=workdir,
            env=env or {},
            timeout=timeout,
            notify=notify,
            encoding=encoding,
            errors=errors,
        )
        self._logger = logger or logging.getLogger(__name__)
        self._installer = installer or InstallerContext.detect()

        program = which(self.command.program)
        if program is None:
            raise CommandUnavailable(self.command.program, platform.system())
        self.argv = [program, *self.command.argv[1:]]

    @classmethod
    def from_command(cls, command: Command, **kwargs: Any) -> Subprocess:
        return cls(
            *command.argv,
            timeout=command.timeout,
            workdir=command.workdir,
            env=command.env,
            notify=command.notify,
            encoding=command.encoding,
            errors=command.errors,
            **kwargs,
        )

    @property
    def notify(self) -> frozenset[str]:
        return self.command.notify

    def execute(self, callback: Callback | None = None) -> Result:
        """Run the command to completion and return its Result.

        Raises:
            ConfigurationError: A callback was given without any notify
                subscriptions. Nothing is started in that case.
            LaunchError: The process could not be started.
            TimeoutExceeded: The timeout passed before the process exited.
                The process is left running.
        """
        if callback is not None and not self.notify:
            # The callback would never be called, which is almost
            # certainly not what the caller meant.
            raise ConfigurationError(
                "A list of notify subscriptions must be given if a callback is given"
            )

        process = self._launch()
        selector = selectors.DefaultSelector()
        try:
            timeout = self.command.timeout
            start = time.monotonic()
            deadline = start + timeout if timeout is not None else None
            outputs = {
                "stdout": _Accumulator(self.command.encoding, self.command.errors),
                "stderr": _Accumulator(self.command.encoding, self.command.errors),
            }

            self._multiplex(process, selector, outputs, deadline, callback)
            exit_code = self._reap(process, outputs, deadline, callback)
        finally:
            selector.close()
            self._close(process)

        return Result(
            exit_code=exit_code,
            stdout=outputs["stdout"].getvalue(),
            stderr=outputs["stderr"].getvalue(),
        )

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self._installer.library_path_overrides(self.argv[0], env))
        env.update(self.command.env)
        return env

    def _launch(self) -> subprocess.Popen:
        env = self._environment()
        workdir = self.command.workdir or os.getcwd()

        self._logger.info("Starting process: %r", self.argv)
        try:
            with safe_chdir(workdir):
                process = subprocess.Popen(
                    self.argv,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    bufsize=0,
                    env=env,
                )
        except (OSError, ValueError) as e:
            # Callers only ever see our own error types.
            raise LaunchError(str(e)) from e

        set_nonblocking(process.stdout.fileno())
        set_nonblocking(process.stderr.fileno())
        return process

    def _multiplex(
        self,
        process: subprocess.Popen,
        selector: selectors.BaseSelector,
        outputs: dict[str, _Accumulator],
        deadline: float | None,
        callback: Callback | None,
    ) -> None:
        selector.register(process.stdout, selectors.EVENT_READ, "stdout")
        selector.register(process.stderr, selectors.EVENT_READ, "stderr")
        watch_stdin = callback is not None and "stdin" in self.notify
        if watch_stdin:
            selector.register(process.stdin, selectors.EVENT_WRITE, "stdin")

        self._logger.debug("Selecting on IO")
        while True:
            if watch_stdin and process.stdin.closed:
                selector.unregister(process.stdin)
                watch_stdin = False

            wait = POLL_INTERVAL
            if deadline is not None:
                wait = max(0.0, min(wait, deadline - time.monotonic()))
            events = selector.select(wait)

            if deadline is not None and time.monotonic() > deadline:
                raise TimeoutExceeded(process.pid)

            stdin_ready = False
            for key, _ in events:
                if key.data == "stdin":
                    stdin_ready = True
                    continue
                eof = self._drain(key.fileobj, key.data, outputs, callback)
                if eof:
                    selector.unregister(key.fileobj)

            # Must come before the stdin notification, or the callback
            # could write into a pipe nobody reads any more.
            if process.poll() is not None:
                break

            if stdin_ready and not process.stdin.closed:
                self._notify(callback, "stdin", process.stdin)

    def _reap(
        self,
        process: subprocess.Popen,
        outputs: dict[str, _Accumulator],
        deadline: float | None,
        callback: Callback | None,
    ) -> int:
        # Output written between the last select and the exit check is
        # still sitting in the pipes.
        self._drain(process.stdout, "stdout", outputs, callback, final=True)
        self._drain(process.stderr, "stderr", outputs, callback, final=True)

        if deadline is None:
            remaining = DEFAULT_REAP_TIMEOUT
        else:
            remaining = max(0.0, deadline - time.monotonic())
        self._logger.debug(
            "Waiting for process to exit. Remaining to timeout: %s", remaining
        )
        try:
            exit_code = process.wait(timeout=remaining)
        except subprocess.TimeoutExpired:
            raise TimeoutExceeded(process.pid) from None

        self._logger.debug("Exit status: %s", exit_code)
        return exit_code

    def _drain(
        self,
        pipe: IO[bytes],
        name: str,
        outputs: dict[str, _Accumulator],
        callback: Callback | None,
        *,
        final: bool = False,
    ) -> bool:
        data, eof = read_until_block(pipe.fileno())
        text = outputs[name].feed(data, final=final or eof)
        if text:
            self._logger.debug("%s: %s", name, text.rstrip("\n"))
            if name in self.notify:
                self._notify(callback, name, text)
        return eof

    def _notify(self, callback: Callback | None, stream: str, payload: Any) -> None:
        if callback is not None:
            callback(stream, payload)

    @staticmethod
    def _close(process: subprocess.Popen) -> None:
        for pipe in (process.stdin, process.stdout, process.stderr):
            if pipe is not None:
                pipe.close()


def execute(*command: str, callback: Callback | None = None, **options: Any) -> Result:
    """Build a Subprocess from *command* and *options* and execute it."""
    return Subprocess(*command, **options).execute(callback)
