"""Data models for vmdriver."""

from __future__ import annotations

from dataclasses import dataclass, field

from vmdriver.constants import (
    DEFAULT_CONTROLLER_TYPE,
    DEFAULT_GUEST_OS,
    DEFAULT_NETWORK_ADAPTER,
    DEFAULT_VSPHERE_PORT,
)
from vmdriver.exceptions import PreconditionFailure


@dataclass(frozen=True)
class HardwareConfig:
    cpus: int = 1
    cpu_reservation: int = 0  # MHz
    cpu_limit: int = 0  # MHz, 0 = unlimited
    ram_mb: int = 512
    ram_reservation: int = 0  # MB
    ram_reserve_all: bool = False

    def __post_init__(self):
        for name in ("cpus", "cpu_reservation", "cpu_limit", "ram_mb", "ram_reservation"):
            if getattr(self, name) < 0:
                raise PreconditionFailure(f"{name} must not be negative (got {getattr(self, name)})")
        if self.cpu_limit > 0 and self.cpu_reservation > self.cpu_limit:
            raise PreconditionFailure(
                f"cpu_reservation ({self.cpu_reservation}) exceeds cpu_limit ({self.cpu_limit})"
            )


@dataclass(frozen=True)
class DiskConfig:
    disk_size_kb: int = 0
    thin_provisioned: bool = False
    controller_type: str = DEFAULT_CONTROLLER_TYPE  # e.g. "scsi", "pvscsi"


@dataclass(frozen=True)
class CloneConfig:
    name: str
    folder: str = ""
    host: str = ""
    resource_pool: str = ""
    datastore: str = ""
    linked_clone: bool = False

    def __post_init__(self):
        if not self.name:
            raise PreconditionFailure("Clone name must not be empty")


@dataclass(frozen=True)
class CreateConfig:
    name: str
    hardware: HardwareConfig = field(default_factory=HardwareConfig)
    disk: DiskConfig = field(default_factory=DiskConfig)
    annotation: str = ""
    folder: str = ""
    host: str = ""
    resource_pool: str = ""
    datastore: str = ""
    guest_os: str = DEFAULT_GUEST_OS
    network: str = ""
    network_adapter: str = DEFAULT_NETWORK_ADAPTER
    force: bool = False

    def __post_init__(self):
        if not self.name:
            raise PreconditionFailure("VM name must not be empty")

    @property
    def vmx_path(self) -> str:
        """Backing file the new VM would occupy, relative to the datastore root."""
        return f"{self.name}/{self.name}.vmx"


@dataclass(frozen=True)
class ConnectionConfig:
    host: str
    username: str
    password: str
    insecure: bool = False
    datacenter: str = ""
    port: int = DEFAULT_VSPHERE_PORT
