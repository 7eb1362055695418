"""CLI entry points for vmdriver."""

from __future__ import annotations

import argparse
import dataclasses
import signal
from pathlib import Path
from typing import Callable, Dict, List, Optional

from vmdriver.config import (
    clone_config_from_dict,
    create_config_from_dict,
    hardware_config_from_dict,
    load_build_config,
    parse_env,
)
from vmdriver.constants import _SENSITIVE_FIELDS, IP_WAIT_TIMEOUT
from vmdriver.driver import Driver
from vmdriver.exceptions import DriverError
from vmdriver.utils import log


def show_config(cfg, indent: int = 2) -> None:
    """Print a resolved config dataclass, masking secrets."""
    pad = " " * indent
    for field in dataclasses.fields(cfg):
        value = getattr(cfg, field.name)
        if field.name in _SENSITIVE_FIELDS:
            print(f"{pad}{field.name}: ********")
        elif dataclasses.is_dataclass(value):
            print(f"{pad}{field.name}:")
            show_config(value, indent + 2)
        else:
            print(f"{pad}{field.name}: {value}")


def cmd_create(driver: Driver, args) -> int:
    cfg = create_config_from_dict(load_build_config(Path(args.file)))
    vm = driver.create_vm(cfg)
    print(vm.name())
    return 0


def cmd_clone(driver: Driver, args) -> int:
    cfg = clone_config_from_dict(load_build_config(Path(args.file)))
    vm = driver.find_vm(args.source).clone(cfg)
    print(vm.name())
    return 0


def cmd_info(driver: Driver, args) -> int:
    info = driver.find_vm(args.name).info("name", "runtime.powerState", "guest.ipAddress", "config.template")
    for key, value in info.items():
        print(f"  {key}: {value}")
    return 0


def cmd_configure(driver: Driver, args) -> int:
    cfg = hardware_config_from_dict(load_build_config(Path(args.file)))
    driver.find_vm(args.name).configure(cfg)
    return 0


def cmd_power_on(driver: Driver, args) -> int:
    driver.find_vm(args.name).power_on()
    return 0


def cmd_power_off(driver: Driver, args) -> int:
    driver.find_vm(args.name).power_off()
    return 0


def cmd_shutdown(driver: Driver, args) -> int:
    vm = driver.find_vm(args.name)
    vm.start_shutdown()
    vm.wait_for_shutdown(args.timeout)
    return 0


def cmd_snapshot(driver: Driver, args) -> int:
    driver.find_vm(args.name).create_snapshot(args.snapshot)
    return 0


def cmd_template(driver: Driver, args) -> int:
    driver.find_vm(args.name).convert_to_template()
    return 0


def cmd_add_cdrom(driver: Driver, args) -> int:
    driver.find_vm(args.name).add_cdrom(args.iso)
    return 0


def cmd_destroy(driver: Driver, args) -> int:
    driver.find_vm(args.name).destroy()
    return 0


def cmd_wait_ip(driver: Driver, args) -> int:
    print(driver.find_vm(args.name).wait_for_ip(args.timeout))
    return 0


COMMANDS: Dict[str, Callable] = {
    "create": cmd_create,
    "clone": cmd_clone,
    "info": cmd_info,
    "configure": cmd_configure,
    "power-on": cmd_power_on,
    "power-off": cmd_power_off,
    "shutdown": cmd_shutdown,
    "snapshot": cmd_snapshot,
    "template": cmd_template,
    "add-cdrom": cmd_add_cdrom,
    "destroy": cmd_destroy,
    "wait-ip": cmd_wait_ip,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vmdriver",
        description="vSphere VM lifecycle driver (connection from VSPHERE_* environment variables)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("show-config", help="Show the resolved create config and exit")
    p.add_argument("file", help="YAML create config")
    p = sub.add_parser("create", help="Create a VM from a YAML create config")
    p.add_argument("file")
    p = sub.add_parser("clone", help="Clone SOURCE using a YAML clone config")
    p.add_argument("source")
    p.add_argument("file")
    p = sub.add_parser("configure", help="Apply a YAML hardware config to a VM")
    p.add_argument("name")
    p.add_argument("file")
    p = sub.add_parser("shutdown", help="Shut down the guest and wait for power off")
    p.add_argument("name")
    p.add_argument("--timeout", type=float, default=300.0, help="Seconds to wait (default: 300)")
    p = sub.add_parser("snapshot", help="Create a snapshot without memory or quiescing")
    p.add_argument("name")
    p.add_argument("snapshot")
    p = sub.add_parser("add-cdrom", help="Attach an ISO to the VM's IDE controller")
    p.add_argument("name")
    p.add_argument("iso", help="Datastore path, e.g. '[datastore1] iso/install.iso'")
    p = sub.add_parser("wait-ip", help="Wait until the guest reports an IP address")
    p.add_argument("name")
    p.add_argument("--timeout", type=float, default=float(IP_WAIT_TIMEOUT))
    for command, help_text in (
        ("info", "Show VM name, power state, IP address and template flag"),
        ("power-on", "Power on the VM"),
        ("power-off", "Power off the VM (no-op when already off)"),
        ("template", "Mark the VM as a template"),
        ("destroy", "Destroy the VM"),
    ):
        p = sub.add_parser(command, help=help_text)
        p.add_argument("name")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    if args.command == "show-config":
        try:
            cfg = create_config_from_dict(load_build_config(Path(args.file)))
        except DriverError as exc:
            log("ERROR", str(exc))
            return 1
        show_config(cfg)
        return 0

    try:
        driver = Driver.connect(parse_env())
    except DriverError as exc:
        log("ERROR", str(exc))
        return 1

    def _cancel(signum, frame):
        log("WARN", "Interrupt received, cancelling")
        driver.context.cancel()

    prev_sigint = signal.signal(signal.SIGINT, _cancel)
    try:
        return COMMANDS[args.command](driver, args)
    except DriverError as exc:
        log("ERROR", str(exc))
        return 1
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1
    finally:
        signal.signal(signal.SIGINT, prev_sigint)
        driver.close()
