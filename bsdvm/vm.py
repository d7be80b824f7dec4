"""VM lifecycle management for BSD-VM-Runner."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Collection, Dict, List, Optional

from bsdvm.commands import build_command
from bsdvm.exceptions import LifecycleError, VmError
from bsdvm.models import (
    Architecture,
    ExecuteOptions,
    GuestOsKind,
    HypervisorBackend,
    LifecycleState,
    VmConfiguration,
)
from bsdvm.network import create_resolver, query_mac_address
from bsdvm.remote import RemoteExecutor, wait_until_ready
from bsdvm.supervisor import ProcessSupervisor
from bsdvm.utils import log

SHUTDOWN_COMMANDS: Dict[GuestOsKind, str] = {
    GuestOsKind.FREE_BSD: "sudo shutdown -p now",
    GuestOsKind.NET_BSD: "sudo shutdown -h -p now",
    GuestOsKind.OPEN_BSD: "sudo shutdown -h -p now",
}

_EXECUTABLE_STATES = (LifecycleState.RUNNING, LifecycleState.READY)


class VirtualMachine:
    """A single guest, driven through init -> run -> wait -> execute* -> stop -> terminate.

    The hypervisor process is owned by this object. Using it as a context
    manager guarantees ``terminate()`` runs on every exit path.
    """

    def __init__(
        self,
        os_kind: GuestOsKind,
        backend: HypervisorBackend,
        hypervisor_path: Path,
        cfg: VmConfiguration,
        architecture: Architecture = Architecture.X86_64,
        supervisor: Optional[ProcessSupervisor] = None,
    ) -> None:
        self.os_kind = os_kind
        self.backend = backend
        self.cfg = cfg
        self.architecture = architecture
        # Unsupported OS/backend pairs fail here, before anything is spawned
        self.command: List[str] = build_command(hypervisor_path, cfg, os_kind, backend, architecture)
        self.supervisor = supervisor or ProcessSupervisor()
        self.state = LifecycleState.CREATED
        self.process: Optional[subprocess.Popen] = None
        self.mac_address: Optional[str] = None
        self.ip_address: Optional[str] = None
        self._executor: Optional[RemoteExecutor] = None
        self._terminate_status: Optional[int] = None

    def __enter__(self) -> "VirtualMachine":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.terminate()
        return False

    def _require_state(self, allowed: Collection[LifecycleState], operation: str) -> None:
        if self.state not in allowed:
            raise LifecycleError(f"Cannot {operation} VM in state '{self.state.value}'")

    @property
    def executor(self) -> RemoteExecutor:
        if self._executor is None:
            if self.ip_address is None:
                raise LifecycleError("VM has no IP address yet; call run() first")
            self._executor = RemoteExecutor(self.ip_address)
        return self._executor

    def init(self) -> None:
        self._require_state((LifecycleState.CREATED,), "initialize")
        log("INFO", "Initializing VM")
        if self.backend is HypervisorBackend.XHYVE:
            self.mac_address = query_mac_address(self.command)
        elif self.cfg.mac_address:
            self.mac_address = self.cfg.mac_address

    def run(self) -> None:
        self._require_state((LifecycleState.CREATED,), "run")
        log("INFO", "Booting VM")
        self.process = self.supervisor.launch(self.command)
        self.state = LifecycleState.RUNNING
        self.get_ip_address()

    def get_ip_address(self) -> str:
        self._require_state(_EXECUTABLE_STATES, "resolve the address of")
        if self.ip_address is None:
            if self.mac_address is None and self.backend is HypervisorBackend.XHYVE:
                self.mac_address = query_mac_address(self.command)
            resolver = create_resolver(self.backend, self.cfg, self.mac_address)
            self.ip_address = resolver.resolve()
        return self.ip_address

    def wait(self, timeout: int) -> None:
        self._require_state(_EXECUTABLE_STATES, "wait for")
        wait_until_ready(self.executor, timeout)
        self.state = LifecycleState.READY

    def execute(self, command: str, options: Optional[ExecuteOptions] = None) -> int:
        self._require_state(_EXECUTABLE_STATES, "execute a command in")
        return self.executor.execute(command, options)

    def execute_raw(self, args: List[str], payload: bytes) -> int:
        self._require_state(_EXECUTABLE_STATES, "execute a command in")
        return self.executor.execute_raw(args, payload)

    def stop(self) -> None:
        """Ask the guest to power off. Whether it actually does is not verified."""
        if self.state is LifecycleState.TERMINATED:
            log("DEBUG", "VM already terminated; nothing to shut down")
            return
        if self.state not in _EXECUTABLE_STATES:
            log("WARN", f"VM is {self.state.value}; skipping guest shutdown")
            self.state = LifecycleState.STOPPED
            return

        log("INFO", "Shutting down VM")
        command = SHUTDOWN_COMMANDS[self.os_kind]
        try:
            exit_code = self.executor.execute(command, ExecuteOptions(ignore_return_code=True))
        except VmError as exc:
            log("WARN", f"Shutdown command could not be sent: {exc}")
        else:
            if exit_code != 0:
                log("WARN", f"Shutdown command exited with status {exit_code}")
        self.state = LifecycleState.STOPPED

    def terminate(self) -> int:
        """Signal the hypervisor process and return the exit status of the signal delivery."""
        if self.state is LifecycleState.TERMINATED:
            log("DEBUG", "VM already terminated")
            return self._terminate_status if self._terminate_status is not None else 0

        log("INFO", "Terminating VM")
        status = 0
        if self.process is not None:
            status = self.supervisor.signal(self.process)
            if status != 0:
                log("WARN", f"Terminating the hypervisor returned status {status}")
            self.supervisor.reap(self.process)
        self.state = LifecycleState.TERMINATED
        self._terminate_status = status
        return status
