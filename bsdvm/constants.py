"""Global constants for BSD-VM-Runner."""

from __future__ import annotations

import os
import re
from pathlib import Path

BASE_URL = "https://github.com/cross-platform-actions"
RELEASE_VERSION = "v0.0.1"
XHYVE_RESOURCE_URL = f"{BASE_URL}/resources/releases/download/{RELEASE_VERSION}/resources.tar"

DEFAULT_RESOURCES_DIR = Path("resources")
CONVERTER_NAME = "qemu-img"
TARGET_DISK_NAME = "disk.raw"
RESOURCES_DISK_NAME = "res.raw"

LOGIN_USER = "runner"
TRUTHY = {"1", "true", "yes", "on"}

# qemu user-mode NAT hands this address to the first guest NIC
USER_NETWORK_ADDRESS = "10.0.2.15"

# "MAC: 52:54:00:..." as printed by `xhyve -M`
MAC_QUERY_FLAG = "-M"
MAC_OUTPUT_PREFIX_LENGTH = 5

ARP_COMMAND = ["arp", "-a", "-n"]
ARP_ATTEMPTS = 500
POLL_INTERVAL = 1.0

DEFAULT_WAIT_TIMEOUT = 120
DEFAULT_SSH_PORT = 2847
DEFAULT_MEMORY = "4G"
DEFAULT_VERSION = "13.0"

QEMU_PROFILES = {
    "x86-64": {
        "binary": "qemu-system-x86_64",
        "machine": "q35",
        "cpu": "host",
        "tcg_cpu": "qemu64",
    },
    "arm64": {
        "binary": "qemu-system-aarch64",
        "machine": "virt",
        "cpu": "host",
        "tcg_cpu": "cortex-a57",
    },
}

SUPPORTED_ACCELERATORS = {"hvf", "kvm", "tcg"}

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

MEMORY_RE = re.compile(r"^\d+[KMGTkmgt]?$")
MAC_ADDRESS_RE = re.compile(r"^[0-9a-f]{1,2}(:[0-9a-f]{1,2}){5}$")
