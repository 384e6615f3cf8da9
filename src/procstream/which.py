"""Executable lookup."""

from __future__ import annotations

import os
import shutil
from pathlib import Path


def which(name: str) -> str | None:
    """Resolve *name* to an absolute executable path.

    A name that already points at an existing file is returned as-is
    (made absolute); anything else is searched for on ``PATH``.
    """
    if not name:
        return None
    path = Path(name)
    if path.is_file():
        return str(path.resolve())
    found = shutil.which(name)
    if found is None:
        return None
    return os.path.abspath(found)
