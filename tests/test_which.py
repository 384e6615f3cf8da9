from __future__ import annotations

import os
import sys

from procstream.which import which


class TestWhich:
    def test_finds_program_on_path(self):
        found = which("sh")
        assert found is not None
        assert os.path.isabs(found)

    def test_missing_program(self):
        assert which("definitely-not-a-real-program-xyz") is None

    def test_empty_name(self):
        assert which("") is None

    def test_existing_file_used_as_is(self):
        assert which(sys.executable) == os.path.realpath(sys.executable)

    def test_relative_file_made_absolute(self, tmp_path, monkeypatch):
        script = tmp_path / "tool.sh"
        script.write_text("#!/bin/sh\n")
        monkeypatch.chdir(tmp_path)
        assert which("tool.sh") == str(script.resolve())
