"""Remote command execution inside the guest over SSH."""

from __future__ import annotations

import subprocess
from typing import List, Optional

from bsdvm.constants import LOGIN_USER, POLL_INTERVAL
from bsdvm.exceptions import ReadinessTimeoutError, SpawnError
from bsdvm.models import ExecuteOptions
from bsdvm.utils import bounded_poll, log


class RemoteExecutor:
    """Runs commands as the pre-provisioned login account at a resolved guest address."""

    def __init__(self, ip_address: str, user: str = LOGIN_USER) -> None:
        self.ip_address = ip_address
        self.user = user

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.ip_address}"

    def _ssh(self, args: List[str], payload: bytes, silent: bool) -> int:
        cmd = ["ssh", "-t", self.destination] + args
        output = subprocess.DEVNULL if silent else None
        try:
            result = subprocess.run(cmd, input=payload, stdout=output, stderr=output, check=False)
        except OSError as exc:
            raise SpawnError(f"Failed to run ssh: {exc}") from exc
        return result.returncode

    def execute(self, command: str, options: Optional[ExecuteOptions] = None) -> int:
        """Pipe ``command`` to a remote shell and return its exit status.

        A non-zero status is returned to the caller as-is. Unless
        ``ignore_return_code`` is set it is also reported as an error.
        """
        if options is None:
            options = ExecuteOptions()
        if options.log:
            log("INFO", f"Executing command inside VM: {command}")
        exit_code = self._ssh([], command.encode("utf-8"), options.silent)
        if exit_code != 0 and not options.ignore_return_code:
            log("ERROR", f"Command inside VM exited with status {exit_code}: {command}")
        return exit_code

    def execute_raw(self, args: List[str], payload: bytes, silent: bool = False) -> int:
        """Run ``args`` remotely with ``payload`` on standard input (e.g. a tar stream)."""
        log("DEBUG", f"Executing inside VM: {' '.join(args)} ({len(payload)} bytes of input)")
        return self._ssh(args, payload, silent)


def wait_until_ready(executor: RemoteExecutor, timeout: int, interval: float = POLL_INTERVAL) -> None:
    """Retry a no-op remote command once per ``interval`` until it succeeds.

    A refused connection and a failing command look the same here: both
    just mean the guest is not ready yet.
    """
    probe_options = ExecuteOptions(log=False, silent=True, ignore_return_code=True)

    def _probe() -> Optional[bool]:
        log("INFO", "Waiting for VM to be ready...")
        if executor.execute("true", probe_options) == 0:
            return True
        return None

    if bounded_poll(_probe, timeout, interval) is None:
        raise ReadinessTimeoutError(timeout)
    log("SUCCESS", "VM is ready")
