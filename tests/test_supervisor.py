"""Tests for bsdvm.supervisor module."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from bsdvm.exceptions import SpawnError
from bsdvm.supervisor import ProcessSupervisor


class TestLaunch:
    def test_spawns_detached_with_sudo(self):
        proc = MagicMock(pid=4321)
        with patch("bsdvm.supervisor.subprocess.Popen", return_value=proc) as mock_popen:
            handle = ProcessSupervisor().launch(["/res/xhyve", "-A"])
        assert handle is proc
        args, kwargs = mock_popen.call_args
        assert args[0] == ["sudo", "/res/xhyve", "-A"]
        assert kwargs["start_new_session"] is True
        assert kwargs["stdin"] is subprocess.DEVNULL

    def test_spawn_failure_raises(self):
        with patch("bsdvm.supervisor.subprocess.Popen", side_effect=FileNotFoundError("sudo")):
            with pytest.raises(SpawnError, match="Failed to launch hypervisor /res/xhyve"):
                ProcessSupervisor().launch(["/res/xhyve"])


class TestSignal:
    def test_sends_term_through_sudo_kill(self):
        handle = MagicMock(pid=1234)
        result = subprocess.CompletedProcess(args=["sudo"], returncode=0)
        with patch("bsdvm.supervisor.run", return_value=result) as mock_run:
            assert ProcessSupervisor().signal(handle) == 0
        mock_run.assert_called_once_with(["sudo", "kill", "-s", "TERM", "1234"], check=False)

    def test_non_zero_status_is_returned_not_raised(self):
        handle = MagicMock(pid=1234)
        result = subprocess.CompletedProcess(args=["sudo"], returncode=1)
        with patch("bsdvm.supervisor.run", return_value=result):
            assert ProcessSupervisor().signal(handle) == 1

    def test_delivery_error_is_swallowed(self):
        handle = MagicMock(pid=1234)
        with patch("bsdvm.supervisor.run", side_effect=FileNotFoundError("sudo")):
            assert ProcessSupervisor().signal(handle) == 127


class TestReap:
    def test_waits_for_process(self):
        handle = MagicMock(pid=1234)
        ProcessSupervisor().reap(handle, timeout=2)
        handle.wait.assert_called_once_with(timeout=2)

    def test_timeout_is_logged_not_raised(self, capsys):
        handle = MagicMock(pid=1234)
        handle.wait.side_effect = subprocess.TimeoutExpired(cmd="sudo", timeout=2)
        ProcessSupervisor().reap(handle, timeout=2)
        assert "[WARN]" in capsys.readouterr().out
