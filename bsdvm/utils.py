"""Utility functions for BSD-VM-Runner."""

from __future__ import annotations

import hashlib
import os
import subprocess
import time
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from bsdvm.constants import (
    _LOG_VERBOSE,
    CONVERTER_NAME,
    MEMORY_RE,
    POLL_INTERVAL,
)
from bsdvm.exceptions import ConfigurationError, VmError

T = TypeVar("T")


def log(level: str, message: str) -> None:
    """Lightweight structured logging with coloured level tags."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def parse_int_env(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise ConfigurationError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise ConfigurationError(f"{name} must be <= {max_val} (got {value})")
    return value


def validate_memory(raw: str) -> str:
    if not MEMORY_RE.match(raw):
        raise ConfigurationError(
            f"Invalid MEMORY '{raw}'. Use a number with optional suffix: K, M, G, T (e.g. '4G')"
        )
    return raw


def kvm_available() -> bool:
    """Return True if /dev/kvm exists and can be opened."""
    kvm_path = Path("/dev/kvm")
    if not kvm_path.exists():
        return False
    try:
        fd = os.open(kvm_path, os.O_RDONLY)
    except OSError:
        return False
    else:
        os.close(fd)
        return True


def bounded_poll(
    probe: Callable[[], Optional[T]],
    attempts: int,
    interval: float = POLL_INTERVAL,
) -> Optional[T]:
    """Call ``probe`` up to ``attempts`` times until it returns a value other than None.

    Sleeps ``interval`` seconds between attempts. Returns None once every
    attempt is spent; callers turn that into their own terminating error.
    """
    for attempt in range(attempts):
        result = probe()
        if result is not None:
            return result
        if attempt + 1 < attempts:
            time.sleep(interval)
    return None


def deterministic_mac(seed: str) -> str:
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    octets = [0x52, 0x54, 0x00, digest[0], digest[1], digest[2]]
    octets[3] = octets[3] | 0x02  # ensure locally administered bit
    octets[3] = octets[3] & 0xFE  # clear multicast bit
    return ":".join(f"{octet:02x}" for octet in octets)


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, check=check, text=True, **kwargs)
    return result


def run_with_output(cmd: List[str], check: bool = True) -> str:
    """Run command quietly and return its standard output."""
    result = run(cmd, check=check, capture_output=True)
    return result.stdout


def convert_to_raw_disk(disk_image: Path, target_disk_name: str, resources_dir: Path) -> Path:
    """Convert a qcow2 image to a raw disk inside ``resources_dir`` using the bundled converter."""
    log("DEBUG", "Converting qcow2 image to raw")
    target = resources_dir / target_disk_name
    cmd = [
        str(resources_dir / CONVERTER_NAME),
        "convert",
        "-f",
        "qcow2",
        "-O",
        "raw",
        str(disk_image),
        str(target),
    ]
    try:
        result = run(cmd, check=False)
    except OSError as exc:
        raise VmError(f"Failed to run disk converter: {exc}") from exc
    if result.returncode != 0:
        raise VmError(f"Disk conversion failed with exit code {result.returncode}: {disk_image}")
    return target
