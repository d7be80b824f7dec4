"""Guest operating system profiles for BSD-VM-Runner."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote

from bsdvm.constants import BASE_URL, RELEASE_VERSION, XHYVE_RESOURCE_URL
from bsdvm.exceptions import ConfigurationError
from bsdvm.models import Architecture, GuestOsKind, HypervisorBackend, VmConfiguration
from bsdvm.utils import convert_to_raw_disk, log
from bsdvm.vm import VirtualMachine


@dataclass(frozen=True)
class OsProfile:
    name: str
    display_name: str
    resource_url: Optional[str]


OS_PROFILES: Dict[GuestOsKind, OsProfile] = {
    GuestOsKind.FREE_BSD: OsProfile("freebsd", "FreeBSD", XHYVE_RESOURCE_URL),
    GuestOsKind.NET_BSD: OsProfile("netbsd", "NetBSD", None),
    GuestOsKind.OPEN_BSD: OsProfile("openbsd", "OpenBSD", XHYVE_RESOURCE_URL),
}


class OperatingSystem:
    def __init__(self, kind: GuestOsKind, architecture: Architecture, version: str) -> None:
        self.kind = kind
        self.architecture = architecture
        self.version = version
        self.profile = OS_PROFILES[kind]

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def resource_url(self) -> str:
        if self.profile.resource_url is None:
            raise ConfigurationError(f"Not implemented: no resource bundle is published for {self.profile.display_name}")
        return self.profile.resource_url

    @property
    def image_name(self) -> str:
        encoded_version = quote(self.version, safe="!*'()")
        return f"{self.name}-{encoded_version}-{self.architecture}.qcow2"

    @property
    def virtual_machine_image_url(self) -> str:
        return "/".join([
            BASE_URL,
            f"{self.name}-builder",
            "releases",
            "download",
            RELEASE_VERSION,
            self.image_name,
        ])

    def prepare_disk(self, disk_image: Path, target_disk_name: str, resources_dir: Path) -> Path:
        """Convert the downloaded qcow2 image to the raw disk the hypervisors boot from."""
        return convert_to_raw_disk(disk_image, target_disk_name, resources_dir)

    def create_virtual_machine(
        self,
        hypervisor_path: Path,
        cfg: VmConfiguration,
        backend: HypervisorBackend,
    ) -> VirtualMachine:
        log("DEBUG", f"Creating {self.profile.display_name} VM on {backend}")
        return VirtualMachine(self.kind, backend, hypervisor_path, cfg, self.architecture)
