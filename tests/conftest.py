"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from bsdvm.models import (
    Architecture,
    GuestOsKind,
    HypervisorBackend,
    RunConfig,
    VmConfiguration,
)


@pytest.fixture
def default_vm_configuration() -> VmConfiguration:
    """Return a VmConfiguration with every boot path populated."""
    return VmConfiguration(
        memory="4G",
        cpu_count=2,
        disk_image=Path("/res/disk.raw"),
        resources_disk_image=Path("/res/res.raw"),
        uuid="864ED7F0-7876-4AA7-8511-816FABCFA87F",
        userboot=Path("/res/userboot.so"),
        firmware=Path("/res/uefi.fd"),
        accelerator="tcg",
        machine_type="q35",
        cpu_model="qemu64",
        ssh_port=2222,
    )


@pytest.fixture
def run_config(default_vm_configuration) -> RunConfig:
    return RunConfig(
        os_kind=GuestOsKind.FREE_BSD,
        architecture=Architecture.X86_64,
        version="13.0",
        backend=HypervisorBackend.QEMU,
        hypervisor_path=Path("qemu-system-x86_64"),
        resources_dir=Path("/res"),
        vm=default_vm_configuration,
        wait_timeout=30,
    )


@pytest.fixture
def mock_env(monkeypatch):
    """Helper to set environment variables for tests."""

    def _set(**kwargs):
        for key, value in kwargs.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, str(value))

    return _set


# Every environment variable parse_env() reads.
_PARSE_ENV_VARS = [
    "VM_CONFIG",
    "OPERATING_SYSTEM",
    "ARCHITECTURE",
    "VERSION",
    "HYPERVISOR",
    "HYPERVISOR_PATH",
    "RESOURCES_DIR",
    "MEMORY",
    "CPUS",
    "SSH_PORT",
    "WAIT_TIMEOUT",
    "DISK_IMAGE",
    "RESOURCES_DISK",
    "USERBOOT",
    "FIRMWARE",
    "ACCELERATOR",
    "CPU_MODEL",
    "MACHINE_TYPE",
    "NETWORK_MODE",
    "NETWORK_BRIDGE",
    "NETWORK_MAC",
    "UUID",
    "GUEST_ADDRESS",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Clear all environment variables that parse_env() reads."""
    for key in _PARSE_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
