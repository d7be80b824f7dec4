"""Guest network identity discovery for BSD-VM-Runner."""

from __future__ import annotations

import re
import subprocess
from typing import List, Optional

from bsdvm.constants import (
    ARP_ATTEMPTS,
    ARP_COMMAND,
    MAC_OUTPUT_PREFIX_LENGTH,
    MAC_QUERY_FLAG,
    POLL_INTERVAL,
)
from bsdvm.exceptions import ConfigurationError, DiscoveryExhaustedError, SpawnError
from bsdvm.models import HypervisorBackend, NetworkMode, VmConfiguration
from bsdvm.utils import bounded_poll, log, run_with_output

_IP_TOKEN_RE = re.compile(r"\(([^)]+)\)")


def extract_ip_address(arp_output: str, mac_address: str) -> Optional[str]:
    """Return the parenthesised address on the first neighbor table line mentioning ``mac_address``.

    A matching line without a parenthesised token counts as not found so the
    caller keeps polling instead of failing on a half-written entry.
    """
    log("DEBUG", "Extracting IP address")
    line = next((entry for entry in arp_output.split("\n") if mac_address in entry), None)
    if line is None:
        return None
    match = _IP_TOKEN_RE.search(line)
    if match is None:
        return None
    ip_address = match.group(1)
    log("INFO", f"Found IP address: '{ip_address}'")
    return ip_address


def query_mac_address(command: List[str]) -> str:
    """Ask the hypervisor which MAC address it will assign, without booting the guest."""
    log("DEBUG", "Getting MAC address")
    try:
        output = run_with_output(["sudo"] + command + [MAC_QUERY_FLAG])
    except (OSError, subprocess.CalledProcessError) as exc:
        raise SpawnError(f"Failed to query MAC address from hypervisor: {exc}") from exc
    mac_address = output.strip()[MAC_OUTPUT_PREFIX_LENGTH:].strip()
    log("DEBUG", f"Found MAC address: '{mac_address}'")
    return mac_address


class FixedAddressResolver:
    """User-mode NAT always gives the first guest NIC the same address."""

    def __init__(self, address: str) -> None:
        self.address = address

    def resolve(self) -> str:
        return self.address


class MacDiscoveryResolver:
    """Find a bridged guest by looking for its MAC address in the host's ARP table."""

    def __init__(
        self,
        mac_address: str,
        attempts: int = ARP_ATTEMPTS,
        interval: float = POLL_INTERVAL,
    ) -> None:
        self.mac_address = mac_address
        self.attempts = attempts
        self.interval = interval

    def _probe(self) -> Optional[str]:
        log("INFO", "Waiting for IP to become available...")
        arp_output = run_with_output(ARP_COMMAND, check=False)
        return extract_ip_address(arp_output, self.mac_address)

    def resolve(self) -> str:
        log("INFO", f"Getting IP address for MAC address: {self.mac_address}")
        ip_address = bounded_poll(self._probe, self.attempts, self.interval)
        if ip_address is None:
            raise DiscoveryExhaustedError(self.mac_address, self.attempts)
        return ip_address


def create_resolver(backend: HypervisorBackend, cfg: VmConfiguration, mac_address: Optional[str] = None):
    """Pick the discovery strategy for a backend and its network mode."""
    if backend is HypervisorBackend.QEMU and cfg.network_mode is NetworkMode.USER:
        return FixedAddressResolver(cfg.fixed_address)
    mac = mac_address or cfg.mac_address
    if not mac:
        raise ConfigurationError(f"A MAC address is required to discover the guest address on {backend}")
    return MacDiscoveryResolver(mac)
