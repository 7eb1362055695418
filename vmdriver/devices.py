"""Virtual hardware composition for create and reconfigure requests.

A ``DeviceList`` is an ordered arena of ``vim.vm.device.VirtualDevice``
records. Devices refer to their controller by integer key
(``controllerKey``), never by object, and every key in a new composition is
generated locally: negative and strictly decreasing so it cannot collide
with keys the endpoint has already assigned.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional, Tuple

from pyVmomi import vim

from vmdriver.constants import (
    DEFAULT_NETWORK_ADAPTER,
    DISK_MODE_PERSISTENT,
    FIRST_DEVICE_KEY,
    IDE_UNITS_PER_CONTROLLER,
    MAX_IDE_CONTROLLERS,
    MAX_SCSI_CONTROLLERS,
    NETWORK_ADAPTER_TYPES,
    SCSI_CONTROLLER_TYPES,
    SCSI_RESERVED_UNIT,
    SCSI_UNITS_PER_CONTROLLER,
)
from vmdriver.exceptions import (
    ControllerNotFound,
    DeviceOrderError,
    InvalidDiskSize,
    LookupFailure,
    NetworkNotFound,
    NotImplementedFailure,
    PreconditionFailure,
    UnsupportedControllerKind,
)
from vmdriver.utils import log


class DeviceList:
    def __init__(self, devices: Optional[Iterable[vim.vm.device.VirtualDevice]] = None) -> None:
        self.devices: List[vim.vm.device.VirtualDevice] = list(devices or [])

    def __iter__(self):
        return iter(self.devices)

    def __len__(self) -> int:
        return len(self.devices)

    def __getitem__(self, index):
        return self.devices[index]

    def new_key(self) -> int:
        key = FIRST_DEVICE_KEY
        for device in self.devices:
            if device.key <= key:
                key = device.key - 1
        return key

    def find(self, key: int) -> Optional[vim.vm.device.VirtualDevice]:
        for device in self.devices:
            if device.key == key:
                return device
        return None

    def append(self, device: vim.vm.device.VirtualDevice) -> "DeviceList":
        self.devices.append(device)
        return self

    def controllers(self, kind=vim.vm.device.VirtualController) -> List[vim.vm.device.VirtualController]:
        return [device for device in self.devices if isinstance(device, kind)]

    def attached_to(self, controller: vim.vm.device.VirtualController) -> List[vim.vm.device.VirtualDevice]:
        return [device for device in self.devices if device.controllerKey == controller.key]

    def require_member(self, controller: vim.vm.device.VirtualController) -> None:
        if controller is None or self.find(controller.key) is not controller:
            key = getattr(controller, "key", None)
            raise DeviceOrderError(
                f"Controller with key {key} is not part of this device list; "
                "append the controller before attaching devices to it"
            )


def _free_unit(devices: DeviceList, controller, units: int, reserved: Tuple[int, ...] = ()) -> int:
    taken = {device.unitNumber for device in devices.attached_to(controller)}
    for unit in range(units):
        if unit in reserved or unit in taken:
            continue
        return unit
    label = type(controller).__name__
    raise PreconditionFailure(f"{label} (key {controller.key}) has no free unit for another device")


def _assign_controller(devices: DeviceList, device, controller) -> None:
    if isinstance(controller, vim.vm.device.VirtualSCSIController):
        unit = _free_unit(devices, controller, SCSI_UNITS_PER_CONTROLLER, (SCSI_RESERVED_UNIT,))
    else:
        unit = _free_unit(devices, controller, IDE_UNITS_PER_CONTROLLER)
    device.controllerKey = controller.key
    device.unitNumber = unit


def add_disk_controller(devices: DeviceList, controller_type: str) -> Tuple[DeviceList, vim.vm.device.VirtualSCSIController]:
    class_name = SCSI_CONTROLLER_TYPES.get(controller_type.lower())
    if class_name is None:
        supported = ", ".join(sorted(SCSI_CONTROLLER_TYPES))
        raise UnsupportedControllerKind(
            f"Unsupported disk controller type '{controller_type}'. Supported: {supported}"
        )
    bus = len(devices.controllers(vim.vm.device.VirtualSCSIController))
    if bus >= MAX_SCSI_CONTROLLERS:
        raise PreconditionFailure(f"A VM supports at most {MAX_SCSI_CONTROLLERS} SCSI controllers")

    controller = getattr(vim.vm.device, class_name)()
    controller.key = devices.new_key()
    controller.busNumber = bus
    controller.sharedBus = vim.vm.device.VirtualSCSIController.Sharing.noSharing
    controller.hotAddRemove = True
    devices.append(controller)
    log("DEBUG", f"Added {class_name} key={controller.key} bus={bus}")
    return devices, controller


def add_disk(devices: DeviceList, controller, size_kb: int, thin: bool) -> DeviceList:
    devices.require_member(controller)
    if size_kb == 0:
        raise NotImplementedFailure("Sizing the disk from a template is not implemented; set a disk size")
    if size_kb < 0:
        raise InvalidDiskSize(f"Disk size must be positive (got {size_kb} KB)")

    disk = vim.vm.device.VirtualDisk()
    disk.key = devices.new_key()
    disk.capacityInKB = size_kb
    disk.backing = vim.vm.device.VirtualDisk.FlatVer2BackingInfo(
        diskMode=DISK_MODE_PERSISTENT,
        thinProvisioned=thin,
        fileName="",
    )
    _assign_controller(devices, disk, controller)
    devices.append(disk)
    log("DEBUG", f"Added disk key={disk.key} size={size_kb}KB thin={thin} on controller {controller.key}")
    return devices


def _network_backing(network):
    if isinstance(network, vim.dvs.DistributedVirtualPortgroup):
        port = vim.dvs.PortConnection(
            portgroupKey=network.key,
            switchUuid=network.config.distributedVirtualSwitch.uuid,
        )
        return vim.vm.device.VirtualEthernetCard.DistributedVirtualPortBackingInfo(port=port)
    if isinstance(network, vim.OpaqueNetwork):
        return vim.vm.device.VirtualEthernetCard.OpaqueNetworkBackingInfo(
            opaqueNetworkId=network.summary.opaqueNetworkId,
            opaqueNetworkType=network.summary.opaqueNetworkType,
        )
    if isinstance(network, vim.Network):
        return vim.vm.device.VirtualEthernetCard.NetworkBackingInfo(
            deviceName=network.name,
            network=network,
        )
    raise PreconditionFailure(f"Unsupported network kind: {type(network).__name__}")


def add_network_adapter(
    devices: DeviceList,
    lookup: Callable[[str], vim.Network],
    network_name: str,
    adapter_type: str = DEFAULT_NETWORK_ADAPTER,
) -> DeviceList:
    class_name = NETWORK_ADAPTER_TYPES.get(adapter_type.lower())
    if class_name is None:
        supported = ", ".join(sorted(NETWORK_ADAPTER_TYPES))
        raise PreconditionFailure(f"Unsupported network adapter '{adapter_type}'. Supported: {supported}")
    try:
        network = lookup(network_name)
    except NetworkNotFound:
        raise
    except LookupFailure as exc:
        raise NetworkNotFound(str(exc)) from exc

    card = getattr(vim.vm.device, class_name)()
    card.key = devices.new_key()
    card.backing = _network_backing(network)
    card.addressType = "generated"
    card.connectable = vim.vm.device.VirtualDevice.ConnectInfo(
        startConnected=True,
        allowGuestControl=True,
        connected=False,
    )
    devices.append(card)
    log("DEBUG", f"Added {class_name} key={card.key} on network '{network.name}'")
    return devices


def add_optical_controller(devices: DeviceList) -> Tuple[DeviceList, vim.vm.device.VirtualIDEController]:
    bus = len(devices.controllers(vim.vm.device.VirtualIDEController))
    if bus >= MAX_IDE_CONTROLLERS:
        raise PreconditionFailure(f"A VM supports at most {MAX_IDE_CONTROLLERS} IDE controllers")
    controller = vim.vm.device.VirtualIDEController()
    controller.key = devices.new_key()
    controller.busNumber = bus
    devices.append(controller)
    log("DEBUG", f"Added IDE controller key={controller.key} bus={bus}")
    return devices, controller


def insert_optical_media(existing_devices, iso_path: str) -> List[vim.vm.device.VirtualDeviceSpec]:
    """Change set adding a CD-ROM with ``iso_path`` to a live VM's existing IDE controller."""
    if not iso_path:
        raise PreconditionFailure("ISO path must not be empty")
    devices = DeviceList(existing_devices)
    ide_controllers = devices.controllers(vim.vm.device.VirtualIDEController)
    if not ide_controllers:
        raise ControllerNotFound("No IDE controller found on the virtual machine")

    controller = None
    for candidate in ide_controllers:
        if len(devices.attached_to(candidate)) < IDE_UNITS_PER_CONTROLLER:
            controller = candidate
            break
    if controller is None:
        raise PreconditionFailure("Every IDE controller on the virtual machine is full")

    cdrom = vim.vm.device.VirtualCdrom()
    cdrom.key = devices.new_key()
    cdrom.backing = vim.vm.device.VirtualCdrom.IsoBackingInfo(fileName=iso_path)
    cdrom.connectable = vim.vm.device.VirtualDevice.ConnectInfo(
        startConnected=True,
        allowGuestControl=True,
        connected=True,
    )
    _assign_controller(devices, cdrom, controller)
    return [
        vim.vm.device.VirtualDeviceSpec(
            operation=vim.vm.device.VirtualDeviceSpec.Operation.add,
            device=cdrom,
        )
    ]


def device_change(devices: DeviceList, operation: str = "add") -> List[vim.vm.device.VirtualDeviceSpec]:
    """Turn a composed device list into the change set of a create/reconfigure spec.

    ``operation`` is one of ``add``, ``edit``, ``remove``.
    """
    operation = getattr(vim.vm.device.VirtualDeviceSpec.Operation, operation)
    seen = set()
    changes = []
    for device in devices:
        if device.controllerKey is not None and device.controllerKey not in seen:
            raise DeviceOrderError(
                f"{type(device).__name__} key={device.key} references controller {device.controllerKey}, "
                "which does not precede it in the device list"
            )
        seen.add(device.key)
        spec = vim.vm.device.VirtualDeviceSpec(operation=operation, device=device)
        if (
            operation == vim.vm.device.VirtualDeviceSpec.Operation.add
            and isinstance(device, vim.vm.device.VirtualDisk)
            and not getattr(device.backing, "fileName", None)
        ):
            spec.fileOperation = vim.vm.device.VirtualDeviceSpec.FileOperation.create
        changes.append(spec)
    return changes
