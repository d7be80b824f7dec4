"""Host detection for BSD-VM-Runner."""

from __future__ import annotations

import platform
from dataclasses import dataclass

from bsdvm.models import HypervisorBackend
from bsdvm.utils import kvm_available, log


@dataclass
class HostInfo:
    system: str  # "darwin", "linux", ...
    accelerator: str  # "hvf", "kvm", "tcg"

    @property
    def default_backend(self) -> HypervisorBackend:
        if self.system == "darwin":
            return HypervisorBackend.XHYVE
        return HypervisorBackend.QEMU


def _detect_accelerator(system: str) -> str:
    """Pick the best hardware accelerator qemu can use on this host."""
    if system == "darwin":
        return "hvf"
    if system == "linux" and kvm_available():
        return "kvm"
    return "tcg"


def detect_host() -> HostInfo:
    system = platform.system().lower()
    accelerator = _detect_accelerator(system)
    if accelerator == "tcg":
        log("WARN", "No hardware acceleration available; qemu will use TCG (much slower)")
    return HostInfo(system=system, accelerator=accelerator)
