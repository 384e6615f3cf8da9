from __future__ import annotations

import pytest

from procstream.command import STREAMS, Command, normalize_notify
from procstream.errors import ConfigurationError


class TestNormalizeNotify:
    def test_none_is_empty(self):
        assert normalize_notify(None) == frozenset()

    def test_single_name(self):
        assert normalize_notify("stdout") == frozenset({"stdout"})

    def test_iterable(self):
        assert normalize_notify(["stdout", "stdin"]) == frozenset({"stdout", "stdin"})

    def test_all_streams(self):
        assert normalize_notify(STREAMS) == STREAMS

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError, match="stdlog"):
            normalize_notify(["stdout", "stdlog"])


class TestCommand:
    def test_defaults(self):
        cmd = Command(argv=("ls",))
        assert cmd.program == "ls"
        assert cmd.workdir is None
        assert cmd.env == {}
        assert cmd.timeout is None
        assert cmd.notify == frozenset()
        assert cmd.encoding == "utf-8"
        assert cmd.errors == "replace"

    def test_coerces_argv_and_env_to_strings(self):
        cmd = Command(argv=["prog", 1, 2.5], env={"N": 3})
        assert cmd.argv == ("prog", "1", "2.5")
        assert cmd.env == {"N": "3"}

    def test_empty_argv(self):
        with pytest.raises(ConfigurationError):
            Command(argv=())

    def test_negative_timeout(self):
        with pytest.raises(ConfigurationError, match="non-negative"):
            Command(argv=("ls",), timeout=-0.5)

    def test_zero_timeout_allowed(self):
        assert Command(argv=("ls",), timeout=0).timeout == 0

    def test_unknown_encoding(self):
        with pytest.raises(ConfigurationError, match="encoding"):
            Command(argv=("ls",), encoding="no-such-codec")

    def test_unknown_error_handler(self):
        with pytest.raises(ConfigurationError, match="error handler"):
            Command(argv=("ls",), errors="no-such-handler")

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            Command(argv=())
