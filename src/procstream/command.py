"""Command — what to run and how to supervise it."""

from __future__ import annotations

import codecs
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from procstream.errors import ConfigurationError

STREAMS = frozenset({"stdout", "stderr", "stdin"})


def normalize_notify(notify: str | Iterable[str] | None) -> frozenset[str]:
    """Turn a stream name or an iterable of names into a subscription set."""
    if notify is None:
        return frozenset()
    if isinstance(notify, str):
        notify = [notify]
    names = frozenset(notify)
    unknown = names - STREAMS
    if unknown:
        raise ConfigurationError(
            f"Unknown notify stream(s) {sorted(unknown)}; "
            f"expected a subset of {sorted(STREAMS)}"
        )
    return names


@dataclass(frozen=True)
class Command:
    argv: tuple[str, ...]
    workdir: str | Path | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    timeout: float | None = None
    notify: frozenset[str] = frozenset()
    encoding: str = "utf-8"
    errors: str = "replace"

    def __post_init__(self):
        if not self.argv:
            raise ConfigurationError("A command needs at least a program name")
        object.__setattr__(self, "argv", tuple(str(a) for a in self.argv))
        object.__setattr__(self, "notify", normalize_notify(self.notify))
        object.__setattr__(
            self, "env", {str(k): str(v) for k, v in (self.env or {}).items()}
        )
        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise ConfigurationError(f"Unknown encoding {self.encoding!r}") from None
        try:
            codecs.lookup_error(self.errors)
        except LookupError:
            raise ConfigurationError(
                f"Unknown decoding error handler {self.errors!r}"
            ) from None
        if self.timeout is not None and self.timeout < 0:
            raise ConfigurationError(
                f"timeout must be non-negative, got {self.timeout!r}"
            )

    @property
    def program(self) -> str:
        return self.argv[0]
