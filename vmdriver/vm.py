"""VM lifecycle management for vmdriver."""

from __future__ import annotations

import time
from typing import Dict, Optional

from pyVmomi import vim, vmodl

from vmdriver.configspec import hardware_config_spec
from vmdriver.constants import (
    DISK_MOVE_LINKED,
    IP_POLL_INTERVAL,
    IP_WAIT_TIMEOUT,
    SHUTDOWN_POLL_INTERVAL,
)
from vmdriver.devices import insert_optical_media
from vmdriver.exceptions import (
    IPTimeout,
    LookupFailure,
    NoSnapshotForLinkedClone,
    RemoteTaskFailure,
    ShutdownTimeout,
)
from vmdriver.models import CloneConfig, HardwareConfig
from vmdriver.utils import log


class VirtualMachine:
    """Handle binding one remote VM reference to lifecycle operations.

    Only the managed object reference is kept; power state, names and
    devices are fetched from the endpoint on every call.
    """

    def __init__(self, driver, ref: vim.VirtualMachine) -> None:
        self.driver = driver
        self.ref = ref

    @property
    def context(self):
        return self.driver.context

    @property
    def executor(self):
        return self.driver.executor

    def __repr__(self) -> str:
        return f"VirtualMachine({getattr(self.ref, '_moId', self.ref)!r})"

    def info(self, *properties: str) -> Dict[str, object]:
        """Fetch VM properties by path (all of them when none are named)."""
        self.context.check()
        collector = vmodl.query.PropertyCollector
        filter_spec = collector.FilterSpec(
            objectSet=[collector.ObjectSpec(obj=self.ref, skip=False)],
            propSet=[
                collector.PropertySpec(
                    type=vim.VirtualMachine,
                    all=not properties,
                    pathSet=list(properties),
                )
            ],
        )
        try:
            contents = self.context.content.propertyCollector.RetrieveContents([filter_spec])
        except vmodl.fault.ManagedObjectNotFound as exc:
            raise LookupFailure(f"Virtual machine {self!r} no longer exists") from exc
        except vmodl.MethodFault as exc:
            raise RemoteTaskFailure("Fetching VM properties", exc) from exc
        if not contents:
            raise LookupFailure(f"Virtual machine {self!r} no longer exists")
        values: Dict[str, object] = {name: None for name in properties}
        for content in contents:
            for prop in content.propSet:
                values[prop.name] = prop.val
        return values

    def name(self) -> str:
        return self.info("name")["name"]

    def power_state(self) -> str:
        return self.info("runtime.powerState")["runtime.powerState"]

    def clone(self, config: CloneConfig) -> "VirtualMachine":
        folder = self.driver.find_folder(config.folder)
        host = self.driver.find_host(config.host)
        pool = self.driver.find_resource_pool(host, config.resource_pool)
        datastore = self.driver.find_datastore_or_default(config.datastore)

        relocate_spec = vim.vm.RelocateSpec(pool=pool, datastore=datastore)
        if host is not None:
            relocate_spec.host = host
        clone_spec = vim.vm.CloneSpec(location=relocate_spec, powerOn=False, template=False)

        if config.linked_clone:
            relocate_spec.diskMoveType = DISK_MOVE_LINKED
            snapshot_info = self.info("snapshot")["snapshot"]
            current = getattr(snapshot_info, "currentSnapshot", None)
            if current is None:
                raise NoSnapshotForLinkedClone("linked_clone is set, but the source VM has no snapshots")
            clone_spec.snapshot = current

        log("INFO", f"Cloning {self!r} to '{config.name}'{' (linked)' if config.linked_clone else ''}")
        vm = self.executor.execute_vm(
            lambda: self.ref.CloneVM_Task(folder=folder, name=config.name, spec=clone_spec),
            f"Clone to '{config.name}'",
            self.driver.new_vm,
        )
        log("SUCCESS", f"Cloned VM '{config.name}'")
        return vm

    def destroy(self) -> None:
        log("INFO", f"Destroying {self!r}")
        self.executor.execute(self.ref.Destroy_Task, "Destroy VM")
        log("SUCCESS", f"Destroyed {self!r}")

    def configure(self, config: HardwareConfig) -> None:
        spec = hardware_config_spec(config)
        log("INFO", f"Reconfiguring {self!r}: CPUs={config.cpus} RAM={config.ram_mb}MB")
        self.executor.execute(lambda: self.ref.ReconfigVM_Task(spec=spec), "Reconfigure VM")

    def power_on(self) -> None:
        log("INFO", f"Powering on {self!r}")
        self.executor.execute(self.ref.PowerOnVM_Task, "Power on VM")

    def power_off(self) -> None:
        state = self.power_state()
        if state == vim.VirtualMachine.PowerState.poweredOff:
            log("INFO", f"{self!r} is already powered off")
            return
        log("INFO", f"Powering off {self!r}")
        self.executor.execute(self.ref.PowerOffVM_Task, "Power off VM")

    def start_shutdown(self) -> None:
        """Ask the guest OS to shut down without waiting for it."""
        self.context.check()
        log("INFO", f"Requesting guest shutdown of {self!r}")
        try:
            self.ref.ShutdownGuest()
        except vmodl.MethodFault as exc:
            raise RemoteTaskFailure("Guest shutdown", exc) from exc

    def wait_for_shutdown(self, timeout: float, interval: float = SHUTDOWN_POLL_INTERVAL) -> None:
        deadline = time.monotonic() + timeout
        log("INFO", f"Waiting up to {timeout:g}s for {self!r} to power off")
        while True:
            if self.power_state() == vim.VirtualMachine.PowerState.poweredOff:
                log("SUCCESS", f"{self!r} powered off")
                return
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ShutdownTimeout("Timeout while waiting for machine to shut down.")
            self.context.wait(min(interval, remaining))

    def wait_for_ip(self, timeout: float = IP_WAIT_TIMEOUT, interval: float = IP_POLL_INTERVAL) -> str:
        deadline = time.monotonic() + timeout
        log("INFO", f"Waiting for {self!r} to report an IP address")
        while True:
            address: Optional[str] = self.info("guest.ipAddress")["guest.ipAddress"]
            if address:
                log("SUCCESS", f"{self!r} IP address: {address}")
                return address
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise IPTimeout(f"Guest did not report an IP address within {timeout:g}s")
            self.context.wait(min(interval, remaining))

    def add_cdrom(self, iso_path: str) -> None:
        devices = self.info("config.hardware.device")["config.hardware.device"] or []
        changes = insert_optical_media(devices, iso_path)
        spec = vim.vm.ConfigSpec(deviceChange=changes)
        log("INFO", f"Attaching {iso_path} to {self!r}")
        self.executor.execute(lambda: self.ref.ReconfigVM_Task(spec=spec), "Add CD-ROM")

    def create_snapshot(self, name: str, description: str = "") -> None:
        log("INFO", f"Creating snapshot '{name}' of {self!r}")
        self.executor.execute(
            lambda: self.ref.CreateSnapshot_Task(name=name, description=description, memory=False, quiesce=False),
            f"Create snapshot '{name}'",
        )

    def convert_to_template(self) -> None:
        self.context.check()
        log("INFO", f"Marking {self!r} as template")
        try:
            self.ref.MarkAsTemplate()
        except vmodl.MethodFault as exc:
            raise RemoteTaskFailure("Mark as template", exc) from exc
