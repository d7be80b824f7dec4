"""Configuration loading and environment variable parsing for BSD-VM-Runner."""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from bsdvm.commands import supports
from bsdvm.constants import (
    DEFAULT_MEMORY,
    DEFAULT_RESOURCES_DIR,
    DEFAULT_SSH_PORT,
    DEFAULT_VERSION,
    DEFAULT_WAIT_TIMEOUT,
    MAC_ADDRESS_RE,
    QEMU_PROFILES,
    RESOURCES_DISK_NAME,
    SUPPORTED_ACCELERATORS,
    TARGET_DISK_NAME,
    USER_NETWORK_ADDRESS,
)
from bsdvm.exceptions import ConfigurationError
from bsdvm.models import (
    Architecture,
    GuestOsKind,
    HypervisorBackend,
    NetworkMode,
    RunConfig,
    VmConfiguration,
)
from bsdvm.runtime import HostInfo, detect_host
from bsdvm.utils import deterministic_mac, get_env, log, parse_int_env, validate_memory


def load_config_file(config_path: Optional[Path]) -> Dict[str, str]:
    """Read a YAML mapping of setting names to values.

    Keys are matched case-insensitively against the environment variable
    names; the environment always wins over the file.
    """
    if config_path is None:
        return {}
    if not config_path.exists():
        raise ConfigurationError(f"VM config file missing: {config_path}")
    try:
        # BaseLoader keeps every scalar as the string written, so 6.10 and 52:54:00:.. survive
        data: Any = yaml.load(config_path.read_text(), Loader=yaml.BaseLoader)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"VM config file {config_path} contains invalid YAML: {exc}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"VM config file {config_path} must contain a mapping, got {type(data).__name__}")
    values: Dict[str, str] = {}
    for key, value in data.items():
        if not isinstance(value, str):
            raise ConfigurationError(f"VM config file {config_path}: {key} must be a single value, got {type(value).__name__}")
        if value:
            values[str(key).upper()] = value
    return values


def _parse_network_mode(raw: str) -> NetworkMode:
    modes = {
        "user": NetworkMode.USER,
        "nat": NetworkMode.USER,
        "bridge": NetworkMode.BRIDGE,
    }
    mode = modes.get(raw.strip().lower())
    if mode is None:
        raise ConfigurationError(f"Unsupported NETWORK_MODE '{raw}'. Expected one of user, nat, bridge.")
    return mode


def parse_env(host: Optional[HostInfo] = None) -> RunConfig:
    config_file = get_env("VM_CONFIG")
    file_values = load_config_file(Path(config_file) if config_file else None)

    def setting(name: str, default: str) -> str:
        value = get_env(name, file_values.get(name, default))
        assert value is not None
        return value.strip()

    def optional_setting(name: str) -> Optional[str]:
        value = get_env(name, file_values.get(name))
        if value is None or not value.strip():
            return None
        return value.strip()

    def int_setting(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
        return parse_int_env(name, file_values.get(name, default), min_val=min_val, max_val=max_val)

    if host is None:
        host = detect_host()

    os_raw = setting("OPERATING_SYSTEM", "freebsd")
    os_kind = GuestOsKind.parse(os_raw)
    if os_kind is None:
        supported = ", ".join(kind.value for kind in GuestOsKind)
        raise ConfigurationError(f"Unsupported OPERATING_SYSTEM '{os_raw}'. Supported: {supported}")

    arch_raw = setting("ARCHITECTURE", "x86-64")
    architecture = Architecture.parse(arch_raw)
    if architecture is None:
        raise ConfigurationError(f"Unsupported ARCHITECTURE '{arch_raw}'. Supported: arm64, x86-64")

    version = setting("VERSION", DEFAULT_VERSION)
    if not version:
        raise ConfigurationError("VERSION must not be empty")

    backend_raw = setting("HYPERVISOR", host.default_backend.value)
    try:
        backend = HypervisorBackend(backend_raw.lower())
    except ValueError:
        raise ConfigurationError(f"Unsupported HYPERVISOR '{backend_raw}'. Supported: xhyve, qemu")
    if not supports(os_kind, backend):
        raise ConfigurationError(f"Not implemented: {os_kind} is not supported on {backend}")
    if backend is HypervisorBackend.XHYVE and architecture is not Architecture.X86_64:
        raise ConfigurationError(f"Not implemented: xhyve does not support architecture {architecture}")

    resources_dir = Path(setting("RESOURCES_DIR", str(DEFAULT_RESOURCES_DIR))).expanduser()
    profile = QEMU_PROFILES[str(architecture)]

    hypervisor_override = optional_setting("HYPERVISOR_PATH")
    if hypervisor_override:
        hypervisor_path = Path(hypervisor_override)
    elif backend is HypervisorBackend.XHYVE:
        hypervisor_path = resources_dir / "xhyve"
    else:
        hypervisor_path = Path(profile["binary"])

    memory = validate_memory(setting("MEMORY", DEFAULT_MEMORY))
    cpus = int_setting("CPUS", "2", min_val=1, max_val=64)
    ssh_port = int_setting("SSH_PORT", str(DEFAULT_SSH_PORT), min_val=1, max_val=65535)
    wait_timeout = int_setting("WAIT_TIMEOUT", str(DEFAULT_WAIT_TIMEOUT), min_val=1)

    disk_image = Path(setting("DISK_IMAGE", str(resources_dir / TARGET_DISK_NAME)))
    resources_disk = optional_setting("RESOURCES_DISK")
    if resources_disk:
        resources_disk_image: Optional[Path] = Path(resources_disk)
    elif backend is HypervisorBackend.XHYVE:
        resources_disk_image = resources_dir / RESOURCES_DISK_NAME
    else:
        resources_disk_image = None

    userboot: Optional[Path] = None
    firmware_override = optional_setting("FIRMWARE")
    firmware: Optional[Path] = Path(firmware_override) if firmware_override else None
    if backend is HypervisorBackend.XHYVE:
        if os_kind is GuestOsKind.FREE_BSD:
            userboot = Path(setting("USERBOOT", str(resources_dir / "userboot.so")))
        elif firmware is None:
            firmware = resources_dir / "uefi.fd"
    elif architecture is Architecture.ARM64 and firmware is None:
        firmware = resources_dir / "uefi.fd"

    accelerator = setting("ACCELERATOR", host.accelerator).lower()
    if accelerator not in SUPPORTED_ACCELERATORS:
        supported = ", ".join(sorted(SUPPORTED_ACCELERATORS))
        raise ConfigurationError(f"Unsupported ACCELERATOR '{accelerator}'. Supported: {supported}")
    default_cpu = profile["tcg_cpu"] if accelerator == "tcg" else profile["cpu"]
    cpu_model = setting("CPU_MODEL", default_cpu)
    machine_type = setting("MACHINE_TYPE", profile["machine"])

    network_mode = _parse_network_mode(setting("NETWORK_MODE", "user"))
    bridge_name = optional_setting("NETWORK_BRIDGE")
    mac_raw = optional_setting("NETWORK_MAC")
    mac_address = mac_raw.lower() if mac_raw else None
    if mac_address and not MAC_ADDRESS_RE.match(mac_address):
        raise ConfigurationError(f"Invalid NETWORK_MAC '{mac_raw}'. Use format aa:bb:cc:dd:ee:ff")
    if backend is HypervisorBackend.XHYVE:
        if network_mode is not NetworkMode.USER or mac_address:
            log("WARN", "NETWORK_MODE/NETWORK_MAC are ignored by xhyve; the MAC is assigned by the hypervisor")
        mac_address = None
    elif network_mode is NetworkMode.BRIDGE:
        if not bridge_name:
            raise ConfigurationError("NETWORK_BRIDGE is required when NETWORK_MODE=bridge")
        if not mac_address:
            mac_address = deterministic_mac(f"{os_kind}-{version}-{architecture}")

    vm = VmConfiguration(
        memory=memory,
        cpu_count=cpus,
        disk_image=disk_image,
        resources_disk_image=resources_disk_image,
        uuid=setting("UUID", str(uuid.uuid4())),
        userboot=userboot,
        firmware=firmware,
        accelerator=accelerator,
        machine_type=machine_type,
        cpu_model=cpu_model,
        ssh_port=ssh_port,
        network_mode=network_mode,
        bridge_name=bridge_name,
        mac_address=mac_address,
        fixed_address=setting("GUEST_ADDRESS", USER_NETWORK_ADDRESS),
    )

    return RunConfig(
        os_kind=os_kind,
        architecture=architecture,
        version=version,
        backend=backend,
        hypervisor_path=hypervisor_path,
        resources_dir=resources_dir,
        vm=vm,
        wait_timeout=wait_timeout,
    )
