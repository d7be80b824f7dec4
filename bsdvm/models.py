"""Data models for BSD-VM-Runner."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional


class Architecture(enum.Enum):
    ARM64 = "arm64"
    X86_64 = "x86_64"

    def __str__(self) -> str:
        for key, value in _ARCHITECTURE_NAMES.items():
            if value is self:
                return key
        raise AssertionError(f"Unreachable: missing {self!r} in architecture lookup table")

    @classmethod
    def parse(cls, value: str) -> Optional["Architecture"]:
        """Return the architecture for a canonical name, ignoring case."""
        return _ARCHITECTURE_NAMES.get(value.strip().lower())


_ARCHITECTURE_NAMES: Dict[str, Architecture] = {
    "arm64": Architecture.ARM64,
    "x86-64": Architecture.X86_64,
}


class GuestOsKind(enum.Enum):
    FREE_BSD = "freebsd"
    NET_BSD = "netbsd"
    OPEN_BSD = "openbsd"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> Optional["GuestOsKind"]:
        lowered = value.strip().lower()
        for kind in cls:
            if kind.value == lowered:
                return kind
        return None


class HypervisorBackend(enum.Enum):
    XHYVE = "xhyve"
    QEMU = "qemu"

    def __str__(self) -> str:
        return self.value


class NetworkMode(enum.Enum):
    USER = "user"
    BRIDGE = "bridge"


class LifecycleState(enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    READY = "ready"
    STOPPED = "stopped"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class VmConfiguration:
    memory: str
    cpu_count: int
    disk_image: Path
    resources_disk_image: Optional[Path] = None
    uuid: str = ""
    userboot: Optional[Path] = None
    firmware: Optional[Path] = None
    # qemu only
    accelerator: str = "tcg"
    machine_type: str = "q35"
    cpu_model: str = "max"
    ssh_port: int = 2847
    network_mode: NetworkMode = NetworkMode.USER
    bridge_name: Optional[str] = None
    mac_address: Optional[str] = None
    fixed_address: str = "10.0.2.15"


@dataclass
class ExecuteOptions:
    log: bool = True
    silent: bool = False
    ignore_return_code: bool = False


@dataclass
class RunConfig:
    os_kind: GuestOsKind
    architecture: Architecture
    version: str
    backend: HypervisorBackend
    hypervisor_path: Path
    resources_dir: Path
    vm: VmConfiguration
    wait_timeout: int = 120
