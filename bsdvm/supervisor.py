"""Hypervisor process supervision for BSD-VM-Runner."""

from __future__ import annotations

import subprocess
from typing import List

from bsdvm.exceptions import SpawnError
from bsdvm.utils import log, run


class ProcessSupervisor:
    """Spawns the hypervisor with elevated privileges and delivers termination signals."""

    def launch(self, argv: List[str]) -> subprocess.Popen:
        cmd = ["sudo"] + argv
        log("DEBUG", f"Spawning: {' '.join(cmd)}")
        try:
            # New session so the hypervisor survives our own process group being signalled
            proc = subprocess.Popen(cmd, stdin=subprocess.DEVNULL, start_new_session=True)
        except OSError as exc:
            raise SpawnError(f"Failed to launch hypervisor {argv[0]}: {exc}") from exc
        log("DEBUG", f"Hypervisor running with PID {proc.pid}")
        return proc

    def signal(self, handle: subprocess.Popen, signal_name: str = "TERM") -> int:
        """Send ``signal_name`` to the process and return the exit code of the delivery.

        The process runs as root, so the signal goes through ``sudo kill``. A
        non-zero status usually means the process is already gone.
        """
        try:
            result = run(["sudo", "kill", "-s", signal_name, str(handle.pid)], check=False)
        except OSError as exc:
            log("WARN", f"Could not deliver SIG{signal_name} to PID {handle.pid}: {exc}")
            return 127
        if result.returncode != 0:
            log("DEBUG", f"kill exited with status {result.returncode} for PID {handle.pid}")
        return result.returncode

    def reap(self, handle: subprocess.Popen, timeout: float = 5.0) -> None:
        try:
            handle.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            log("WARN", f"Hypervisor (PID {handle.pid}) still running {timeout:.0f}s after termination request")
