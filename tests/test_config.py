"""Config module tests.

Covers UBR_* environment variable parsing and the global config instance.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest

from ue_build_runner.config import (
    DEFAULT_KILL_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TERM_TIMEOUT,
    Config,
    get_config,
    load_config,
    reload_config,
)

UBR_VARS = ("UBR_LOG_DEBUG", "UBR_POLL_INTERVAL", "UBR_TERM_TIMEOUT", "UBR_KILL_TIMEOUT", "UBR_REVEAL")


@pytest.fixture
def clean_env():
    """Environment without any UBR_* variable."""
    env = {k: v for k, v in os.environ.items() if k not in UBR_VARS}
    with mock.patch.dict(os.environ, env, clear=True):
        yield


class TestDefaults:
    """Test defaults when nothing is set."""

    def test_defaults(self, clean_env):
        config = load_config()
        assert config.log_debug is False
        assert config.log_file is None
        assert config.poll_interval == DEFAULT_POLL_INTERVAL
        assert config.term_timeout == DEFAULT_TERM_TIMEOUT
        assert config.kill_timeout == DEFAULT_KILL_TIMEOUT
        assert config.reveal is True

    def test_dataclass_defaults_match(self, clean_env):
        assert load_config() == Config()


class TestParseBool:
    """Test boolean parsing."""

    @pytest.mark.parametrize("value", ["true", "True", "1", "yes", "on"])
    def test_truthy_values(self, value: str):
        with mock.patch.dict(os.environ, {"UBR_REVEAL": value}, clear=False):
            assert load_config().reveal is True

    @pytest.mark.parametrize("value", ["false", "FALSE", "0", "no", "off", ""])
    def test_falsy_values(self, value: str):
        with mock.patch.dict(os.environ, {"UBR_REVEAL": value}, clear=False):
            assert load_config().reveal is False


class TestParseSeconds:
    """Test duration parsing and clamping."""

    def test_valid_value(self):
        with mock.patch.dict(os.environ, {"UBR_POLL_INTERVAL": "0.5"}, clear=False):
            assert load_config().poll_interval == 0.5

    def test_clamped_low(self):
        with mock.patch.dict(os.environ, {"UBR_POLL_INTERVAL": "0"}, clear=False):
            assert load_config().poll_interval == 0.01

    def test_clamped_high(self):
        with mock.patch.dict(
            os.environ, {"UBR_TERM_TIMEOUT": "600", "UBR_KILL_TIMEOUT": "-3"}, clear=False
        ):
            config = load_config()
            assert config.term_timeout == 30.0
            assert config.kill_timeout == 0.1

    def test_invalid_uses_default(self):
        with mock.patch.dict(os.environ, {"UBR_TERM_TIMEOUT": "soon"}, clear=False):
            assert load_config().term_timeout == DEFAULT_TERM_TIMEOUT

    def test_empty_uses_default(self):
        with mock.patch.dict(os.environ, {"UBR_KILL_TIMEOUT": ""}, clear=False):
            assert load_config().kill_timeout == DEFAULT_KILL_TIMEOUT


class TestLogDebug:
    """Test the debug log file."""

    def test_log_file_generated(self):
        with mock.patch.dict(os.environ, {"UBR_LOG_DEBUG": "1"}, clear=False):
            config = load_config()
        assert config.log_debug is True
        log_file = Path(config.log_file)
        assert log_file.parent.name == "ue-build-runner"
        assert log_file.name.startswith("ubr_debug_")
        assert log_file.suffix == ".log"


class TestGlobalConfig:
    """Test the global config instance."""

    def test_get_config_cached(self):
        reload_config()
        assert get_config() is get_config()

    def test_reload_picks_up_changes(self):
        with mock.patch.dict(os.environ, {"UBR_REVEAL": "false"}, clear=False):
            assert reload_config().reveal is False
        with mock.patch.dict(os.environ, {"UBR_REVEAL": "true"}, clear=False):
            assert reload_config().reveal is True
            assert get_config().reveal is True

    def test_repr(self):
        text = repr(Config(poll_interval=0.2))
        assert text.startswith("Config(")
        assert "poll_interval=0.2" in text
