"""Installer context — library search path fix-ups for bundled installs.

A self-contained installation ships its own shared libraries under
``<embedded dir>/lib``. On macOS, executables from that embedded directory
must find those libraries first, which means prepending to
``DYLD_LIBRARY_PATH``. The dynamic loader ignores that variable for
setuid/setgid binaries, so for those it is cleared instead.
"""

from __future__ import annotations

import logging
import os
import stat
import sys
from collections.abc import Mapping
from dataclasses import dataclass

INSTALLER_ENV_VAR = "PROCSTREAM_INSTALLER_ENV"
EMBEDDED_DIR_VAR = "PROCSTREAM_INSTALLER_EMBEDDED_DIR"
LIBRARY_PATH_VAR = "DYLD_LIBRARY_PATH"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallerContext:
    in_installer: bool
    requires_library_path: bool
    embedded_dir: str = ""

    @classmethod
    def detect(cls, environ: Mapping[str, str] | None = None) -> InstallerContext:
        environ = os.environ if environ is None else environ
        return cls(
            in_installer=bool(environ.get(INSTALLER_ENV_VAR)),
            requires_library_path=sys.platform == "darwin",
            embedded_dir=environ.get(EMBEDDED_DIR_VAR, ""),
        )

    @property
    def requires_library_path_fix(self) -> bool:
        return self.in_installer and self.requires_library_path

    def contains(self, executable: str) -> bool:
        if not self.embedded_dir:
            return False
        return self.embedded_dir.lower() in executable.lower()

    def library_path_overrides(
        self, executable: str, environ: Mapping[str, str]
    ) -> dict[str, str]:
        """Environment entries to set before launching *executable*."""
        if not self.requires_library_path_fix:
            return {}

        overrides: dict[str, str] = {}
        if self.contains(executable):
            logger.info("Command in the installer. Specifying %s", LIBRARY_PATH_VAR)
            lib_dir = os.path.join(self.embedded_dir, "lib")
            current = environ.get(LIBRARY_PATH_VAR, "")
            overrides[LIBRARY_PATH_VAR] = f"{lib_dir}:{current}"
        else:
            logger.debug("Command not in installer, not touching env vars")

        if _is_setuid_or_setgid(executable):
            logger.info("Command is setuid/setgid, clearing %s", LIBRARY_PATH_VAR)
            overrides[LIBRARY_PATH_VAR] = ""
        return overrides


def _is_setuid_or_setgid(path: str) -> bool:
    try:
        mode = os.stat(path).st_mode
    except OSError:
        return False
    return bool(mode & (stat.S_ISUID | stat.S_ISGID))
