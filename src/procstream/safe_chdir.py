"""Scoped working-directory changes."""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

# The working directory is process-wide state, so only one thread may
# hold it changed at a time.
_lock = threading.RLock()


@contextmanager
def safe_chdir(path: str | Path) -> Iterator[Path]:
    """Change into *path* for the duration of the block.

    The previous working directory is restored however the block exits.
    """
    with _lock:
        previous = os.getcwd()
        os.chdir(path)
        try:
            yield Path(path)
        finally:
            os.chdir(previous)
