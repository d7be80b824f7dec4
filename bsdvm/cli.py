"""CLI entry points for BSD-VM-Runner."""

from __future__ import annotations

import argparse
import dataclasses
import shlex
import traceback
from pathlib import Path
from typing import List, Optional

from bsdvm.config import parse_env
from bsdvm.constants import LOGIN_USER, TARGET_DISK_NAME
from bsdvm.exceptions import RemoteCommandError, VmError
from bsdvm.models import RunConfig
from bsdvm.operating_system import OperatingSystem
from bsdvm.utils import log
from bsdvm.vm import VirtualMachine


def show_config(cfg: RunConfig) -> None:
    """Print the resolved run configuration."""
    for field in dataclasses.fields(cfg):
        value = getattr(cfg, field.name)
        if dataclasses.is_dataclass(value):
            print(f"  {field.name}:")
            for sub_field in dataclasses.fields(value):
                print(f"    {sub_field.name}: {getattr(value, sub_field.name)}")
        else:
            print(f"  {field.name}: {value}")


def print_startup_banner(cfg: RunConfig, vm: VirtualMachine) -> None:
    lines = [
        f"  VM: {cfg.os_kind} {cfg.version} ({cfg.architecture}) on {cfg.backend}",
        f"  Memory: {cfg.vm.memory} | CPUs: {cfg.vm.cpu_count}",
        f"  SSH:  ssh {LOGIN_USER}@{vm.ip_address}",
    ]
    if vm.mac_address:
        lines.append(f"  MAC:  {vm.mac_address}")
    border_len = max(len(line) for line in lines) + 2
    banner_colour = "\033[0;36m"
    reset = "\033[0m"
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)
    for line in lines:
        print(f"{banner_colour}{line}{reset}", flush=True)
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)


def run_commands(vm: VirtualMachine, commands: List[str]) -> None:
    """Execute each command in order, stopping at the first non-zero exit status."""
    for command in commands:
        exit_code = vm.execute(command)
        if exit_code != 0:
            raise RemoteCommandError(command, exit_code)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Boot a BSD guest, run commands over SSH and shut it down")
    parser.add_argument("--show-config", action="store_true", help="Show resolved configuration and exit")
    parser.add_argument("--print-command", action="store_true", help="Print the hypervisor command line and exit")
    parser.add_argument("--image-url", action="store_true", help="Print the VM image download URL and exit")
    parser.add_argument(
        "--prepare-disk",
        metavar="QCOW2",
        type=Path,
        help="Convert a qcow2 image to the raw boot disk before starting",
    )
    parser.add_argument(
        "--run",
        action="append",
        default=[],
        metavar="COMMAND",
        help="Command to execute inside the VM (repeatable, executed in order)",
    )
    parser.add_argument("--no-shutdown", action="store_true", help="Skip the guest shutdown command")
    args = parser.parse_args(argv)

    try:
        cfg = parse_env()
    except VmError as exc:
        log("ERROR", str(exc))
        return 1

    operating_system = OperatingSystem(cfg.os_kind, cfg.architecture, cfg.version)

    if args.image_url:
        print(operating_system.virtual_machine_image_url)
        return 0

    if args.show_config:
        show_config(cfg)
        return 0

    try:
        vm = operating_system.create_virtual_machine(cfg.hypervisor_path, cfg.vm, cfg.backend)
        if args.print_command:
            print(shlex.join(vm.command))
            return 0

        log("INFO", f"Guest: {cfg.os_kind} {cfg.version} ({cfg.architecture}) | Hypervisor: {cfg.backend}")
        if args.prepare_disk is not None:
            operating_system.prepare_disk(args.prepare_disk, TARGET_DISK_NAME, cfg.resources_dir)

        with vm:
            vm.init()
            vm.run()
            vm.wait(cfg.wait_timeout)
            print_startup_banner(cfg, vm)
            try:
                run_commands(vm, args.run)
            finally:
                if not args.no_shutdown:
                    vm.stop()
        return 0
    except RemoteCommandError as exc:
        log("ERROR", str(exc))
        return exc.exit_code
    except VmError as exc:
        log("ERROR", str(exc))
        return 1
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        traceback.print_exc()
        return 1
