"""Hypervisor command line construction for BSD-VM-Runner.

Every supported (guest OS, hypervisor) pair maps to a ``CommandFragments``
value in ``_FRAGMENTS``. The backend skeleton supplies the shared device
layout and the fragment supplies the NIC model and the boot clause.
Building a command never touches the filesystem or the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from bsdvm.exceptions import ConfigurationError
from bsdvm.models import (
    Architecture,
    GuestOsKind,
    HypervisorBackend,
    NetworkMode,
    VmConfiguration,
)


@dataclass(frozen=True)
class CommandFragments:
    network_device: str
    boot: Callable[[VmConfiguration], List[str]]


def _require(value, flag: str, os_kind: str):
    if value is None or str(value) == "":
        raise ConfigurationError(f"{os_kind} requires {flag} to be configured")
    return value


def _freebsd_userboot(cfg: VmConfiguration) -> List[str]:
    userboot = _require(cfg.userboot, "a userboot path", "FreeBSD on xhyve")
    return ["-f", f"fbsd,{userboot},{cfg.disk_image},"]


def _openbsd_bootrom(cfg: VmConfiguration) -> List[str]:
    firmware = _require(cfg.firmware, "a firmware path", "OpenBSD on xhyve")
    return ["-l", f"bootrom,{firmware}", "-w"]


def _qemu_firmware(cfg: VmConfiguration) -> List[str]:
    if cfg.firmware is None:
        return []
    return ["-bios", str(cfg.firmware)]


_FRAGMENTS: Dict[Tuple[GuestOsKind, HypervisorBackend], CommandFragments] = {
    (GuestOsKind.FREE_BSD, HypervisorBackend.XHYVE): CommandFragments("virtio-net", _freebsd_userboot),
    (GuestOsKind.OPEN_BSD, HypervisorBackend.XHYVE): CommandFragments("e1000", _openbsd_bootrom),
    (GuestOsKind.FREE_BSD, HypervisorBackend.QEMU): CommandFragments("virtio-net-pci", _qemu_firmware),
    (GuestOsKind.NET_BSD, HypervisorBackend.QEMU): CommandFragments("e1000", _qemu_firmware),
}


def _xhyve_skeleton(
    hypervisor_path: Path,
    cfg: VmConfiguration,
    architecture: Architecture,
    fragments: CommandFragments,
) -> List[str]:
    if architecture is not Architecture.X86_64:
        raise ConfigurationError(f"Not implemented: xhyve does not support architecture {architecture}")
    cmd = [
        str(hypervisor_path),
        "-U", cfg.uuid,
        "-A",
        "-H",
        "-m", cfg.memory,
        "-c", str(cfg.cpu_count),
        "-s", "0:0,hostbridge",
        "-s", f"2:0,{fragments.network_device}",
        "-s", f"4:0,virtio-blk,{cfg.disk_image}",
    ]
    if cfg.resources_disk_image is not None:
        cmd.extend(["-s", f"4:1,virtio-blk,{cfg.resources_disk_image}"])
    cmd.extend([
        "-s", "31,lpc",
        "-l", "com1,stdio",
    ])
    return cmd


def _qemu_network(cfg: VmConfiguration, network_device: str) -> List[str]:
    if cfg.network_mode is NetworkMode.USER:
        netdev = f"user,id=net0,hostfwd=tcp::{cfg.ssh_port}-:22"
    elif cfg.network_mode is NetworkMode.BRIDGE:
        if not cfg.bridge_name:
            raise ConfigurationError("NETWORK_BRIDGE must be set when NETWORK_MODE=bridge")
        netdev = f"bridge,id=net0,br={cfg.bridge_name}"
    else:
        raise ConfigurationError(f"Unsupported network mode: {cfg.network_mode}")

    device = f"{network_device},netdev=net0"
    if cfg.mac_address:
        device += f",mac={cfg.mac_address}"
    return ["-netdev", netdev, "-device", device]


def _qemu_skeleton(
    hypervisor_path: Path,
    cfg: VmConfiguration,
    architecture: Architecture,
    fragments: CommandFragments,
) -> List[str]:
    cmd = [
        str(hypervisor_path),
        "-machine", f"type={cfg.machine_type},accel={cfg.accelerator}",
        "-cpu", cfg.cpu_model,
        "-smp", str(cfg.cpu_count),
        "-m", cfg.memory,
        "-device", "virtio-scsi-pci",
        "-drive", f"if=none,file={cfg.disk_image},id=drive0,cache=unsafe,discard=ignore,format=raw",
        "-device", "scsi-hd,drive=drive0,bootindex=0",
    ]
    if cfg.resources_disk_image is not None:
        cmd.extend([
            "-drive", f"if=none,file={cfg.resources_disk_image},id=drive1,cache=unsafe,discard=ignore,format=raw",
            "-device", "scsi-hd,drive=drive1",
        ])
    cmd.extend(_qemu_network(cfg, fragments.network_device))
    cmd.extend([
        "-display", "none",
        "-monitor", "none",
        "-serial", "stdio",
    ])
    return cmd


_SKELETONS = {
    HypervisorBackend.XHYVE: _xhyve_skeleton,
    HypervisorBackend.QEMU: _qemu_skeleton,
}


def supports(os_kind: GuestOsKind, backend: HypervisorBackend) -> bool:
    return (os_kind, backend) in _FRAGMENTS


def build_command(
    hypervisor_path: Path,
    cfg: VmConfiguration,
    os_kind: GuestOsKind,
    backend: HypervisorBackend,
    architecture: Architecture = Architecture.X86_64,
) -> List[str]:
    """Return the argument vector that boots ``os_kind`` on ``backend``."""
    fragments = _FRAGMENTS.get((os_kind, backend))
    if fragments is None:
        raise ConfigurationError(f"Not implemented: {os_kind} is not supported on {backend}")
    skeleton = _SKELETONS[backend]
    return skeleton(hypervisor_path, cfg, architecture, fragments) + fragments.boot(cfg)
