from __future__ import annotations

from pathlib import Path

import pytest

from procstream.config import (
    apply_overrides,
    build_command,
    load_toml,
    parse_value,
    resolve_config_path,
)
from procstream.errors import ConfigurationError

FIXTURES = Path(__file__).parent / "fixtures"


class TestParseValue:
    def test_bools(self):
        assert parse_value("true") is True
        assert parse_value("False") is False

    def test_numbers(self):
        assert parse_value("42") == 42
        assert parse_value("2.5") == 2.5

    def test_string(self):
        assert parse_value("make") == "make"


class TestApplyOverrides:
    def test_dotted_path(self):
        config = {"command": {"timeout": 10}}
        result = apply_overrides(config, ["command.timeout=5"])
        assert result["command"]["timeout"] == 5
        assert config["command"]["timeout"] == 10  # original not mutated

    def test_creates_missing_tables(self):
        result = apply_overrides({}, ["command.env.DEBUG=1"])
        assert result == {"command": {"env": {"DEBUG": 1}}}

    def test_missing_equals(self):
        with pytest.raises(ValueError, match="missing '='"):
            apply_overrides({}, ["command.timeout"])


class TestResolveConfigPath:
    def test_direct_path(self):
        path = FIXTURES / "echo.procstream.toml"
        assert resolve_config_path(str(path)) == path

    def test_short_name(self, monkeypatch):
        monkeypatch.chdir(FIXTURES)
        assert resolve_config_path("echo") == Path("echo.procstream.toml")

    def test_unknown_returned_unchanged(self, tmp_path):
        raw = str(tmp_path / "nope")
        assert resolve_config_path(raw) == Path(raw)


class TestBuildCommand:
    def test_flat_section(self):
        config = {
            "command": {
                "program": "python3",
                "args": ["-c", "pass"],
                "timeout": 5,
                "notify": ["stdout", "stderr"],
                "env": {"A": "1"},
            }
        }
        cmd = build_command(config)
        assert cmd.argv == ("python3", "-c", "pass")
        assert cmd.timeout == 5
        assert cmd.notify == frozenset({"stdout", "stderr"})
        assert cmd.env == {"A": "1"}
        assert cmd.workdir is None
        assert cmd.errors == "replace"

    def test_decoding_options(self):
        config = {"command": {"program": "ls", "encoding": "latin-1", "errors": "strict"}}
        cmd = build_command(config)
        assert cmd.encoding == "latin-1"
        assert cmd.errors == "strict"

    def test_missing_section(self):
        with pytest.raises(ConfigurationError, match=r"\[command\]"):
            build_command({})

    def test_missing_program(self):
        with pytest.raises(ConfigurationError, match="program is required"):
            build_command({"command": {"args": []}})

    def test_args_must_be_list(self):
        with pytest.raises(ConfigurationError, match="args must be a list"):
            build_command({"command": {"program": "ls", "args": "-l"}})

    def test_env_must_be_table(self):
        with pytest.raises(ConfigurationError, match="env must be a table"):
            build_command({"command": {"program": "ls", "env": "A=1"}})

    def test_relative_workdir_uses_base_dir(self, tmp_path):
        config = {"command": {"program": "ls", "workdir": "sub"}}
        cmd = build_command(config, base_dir=tmp_path)
        assert cmd.workdir == tmp_path / "sub"

    def test_absolute_workdir_kept(self, tmp_path):
        config = {"command": {"program": "ls", "workdir": str(tmp_path)}}
        cmd = build_command(config, base_dir=Path("/elsewhere"))
        assert cmd.workdir == tmp_path


class TestProfiles:
    def _config(self):
        return load_toml(FIXTURES / "echo.procstream.toml")

    def test_default_profile(self):
        cmd = build_command(self._config())
        assert cmd.argv[0] == "sh"
        assert cmd.env == {"GREETING": "hello"}
        assert cmd.timeout == 30

    def test_named_profile_layers_over_section(self):
        cmd = build_command(self._config(), profile="loud")
        assert cmd.argv == ("sh", "-c", 'echo "$GREETING!" | tr a-z A-Z')
        assert cmd.env == {"GREETING": "hey"}
        assert cmd.notify == frozenset({"stdout"})

    def test_first_profile_without_default(self):
        config = {
            "command": {
                "program": "ls",
                "profile": {"first": {"args": ["-1"]}, "second": {"args": ["-l"]}},
            }
        }
        assert build_command(config).argv == ("ls", "-1")

    def test_unknown_profile(self):
        with pytest.raises(ConfigurationError, match="Unknown profile 'quiet'"):
            build_command(self._config(), profile="quiet")

    def test_profile_without_profiles(self):
        with pytest.raises(ConfigurationError, match="no profiles"):
            build_command({"command": {"program": "ls"}}, profile="ci")
