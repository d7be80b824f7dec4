"""Tests for bsdvm.utils module."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from bsdvm.exceptions import ConfigurationError, VmError
from bsdvm.utils import (
    bounded_poll,
    convert_to_raw_disk,
    deterministic_mac,
    get_env,
    log,
    parse_int_env,
    run_with_output,
    validate_memory,
)


class TestLog:
    def test_info_has_tag(self, capsys):
        log("INFO", "Booting VM")
        out = capsys.readouterr().out
        assert "[INFO]" in out
        assert "Booting VM" in out

    def test_debug_hidden_by_default(self, capsys):
        with patch("bsdvm.utils._LOG_VERBOSE", False):
            log("DEBUG", "hidden")
        assert capsys.readouterr().out == ""

    def test_debug_shown_when_verbose(self, capsys):
        with patch("bsdvm.utils._LOG_VERBOSE", True):
            log("DEBUG", "shown")
        assert "shown" in capsys.readouterr().out

    def test_unknown_level_is_uncoloured(self, capsys):
        log("TRACE", "plain")
        assert capsys.readouterr().out == "[TRACE] plain\n"


class TestEnvHelpers:
    def test_get_env_prefers_environment(self, mock_env):
        mock_env(VERSION="14.0")
        assert get_env("VERSION", "13.0") == "14.0"

    def test_get_env_falls_back_to_default(self, mock_env):
        mock_env(VERSION=None)
        assert get_env("VERSION", "13.0") == "13.0"
        assert get_env("VERSION") is None

    def test_parse_int_uses_default(self, mock_env):
        mock_env(CPUS=None)
        assert parse_int_env("CPUS", "2") == 2

    def test_parse_int_rejects_garbage(self, mock_env):
        mock_env(CPUS="two")
        with pytest.raises(ConfigurationError, match="CPUS must be an integer"):
            parse_int_env("CPUS", "2")

    def test_parse_int_bounds(self, mock_env):
        mock_env(CPUS="65")
        with pytest.raises(ConfigurationError, match="CPUS must be <= 64"):
            parse_int_env("CPUS", "2", max_val=64)


class TestValidateMemory:
    @pytest.mark.parametrize("raw", ["4G", "512M", "2048", "1t"])
    def test_valid(self, raw):
        assert validate_memory(raw) == raw

    @pytest.mark.parametrize("raw", ["", "4GB", "-1G", "lots"])
    def test_invalid(self, raw):
        with pytest.raises(ConfigurationError):
            validate_memory(raw)


class TestBoundedPoll:
    def test_returns_first_value(self):
        probe = MagicMock(side_effect=[None, None, "10.0.0.2"])
        with patch("bsdvm.utils.time.sleep") as mock_sleep:
            assert bounded_poll(probe, attempts=5, interval=0.5) == "10.0.0.2"
        assert probe.call_count == 3
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(0.5)

    def test_exhausted_returns_none_without_trailing_sleep(self):
        probe = MagicMock(return_value=None)
        with patch("bsdvm.utils.time.sleep") as mock_sleep:
            assert bounded_poll(probe, attempts=4) is None
        assert probe.call_count == 4
        assert mock_sleep.call_count == 3

    def test_zero_attempts_never_probes(self):
        probe = MagicMock()
        assert bounded_poll(probe, attempts=0) is None
        probe.assert_not_called()


class TestDeterministicMac:
    def test_stable_and_unicast(self):
        mac = deterministic_mac("freebsd-13.0-x86-64")
        assert mac == deterministic_mac("freebsd-13.0-x86-64")
        assert mac.startswith("52:54:00:")
        fourth = int(mac.split(":")[3], 16)
        assert fourth & 0x02
        assert not fourth & 0x01

    def test_seed_changes_mac(self):
        assert deterministic_mac("a") != deterministic_mac("b")


class TestRunWithOutput:
    def test_returns_stdout(self):
        completed = subprocess.CompletedProcess(args=["arp"], returncode=0, stdout="output\n")
        with patch("bsdvm.utils.subprocess.run", return_value=completed) as mock_run:
            assert run_with_output(["arp", "-a", "-n"], check=False) == "output\n"
        mock_run.assert_called_once_with(["arp", "-a", "-n"], check=False, text=True, capture_output=True)


class TestConvertToRawDisk:
    def test_missing_converter_raises(self, tmp_path):
        with patch("bsdvm.utils.subprocess.run", side_effect=FileNotFoundError("qemu-img")):
            with pytest.raises(VmError, match="Failed to run disk converter"):
                convert_to_raw_disk(Path("/tmp/a.qcow2"), "disk.raw", tmp_path)
