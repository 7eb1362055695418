"""Translation of hardware and create intent into vSphere config specs."""

from __future__ import annotations

from pyVmomi import vim

from vmdriver.constants import UNLIMITED
from vmdriver.models import CreateConfig, HardwareConfig


def _allocation_limit(limit: int) -> int:
    # 0 is the "unset" sentinel in HardwareConfig, never a zero-capacity cap.
    return UNLIMITED if limit == 0 else limit


def is_unlimited(allocation: vim.ResourceAllocationInfo) -> bool:
    return allocation.limit == UNLIMITED


def hardware_config_spec(config: HardwareConfig) -> vim.vm.ConfigSpec:
    """Build the reconfigure spec for CPU and memory sizing and allocation."""
    spec = vim.vm.ConfigSpec()
    spec.numCPUs = config.cpus
    spec.memoryMB = config.ram_mb
    spec.cpuAllocation = vim.ResourceAllocationInfo(
        reservation=config.cpu_reservation,
        limit=_allocation_limit(config.cpu_limit),
    )
    spec.memoryAllocation = vim.ResourceAllocationInfo(reservation=config.ram_reservation)
    spec.memoryReservationLockedToMax = config.ram_reserve_all
    return spec


def create_config_spec(config: CreateConfig) -> vim.vm.ConfigSpec:
    """Hardware spec overlaid with the new VM's identity fields."""
    spec = hardware_config_spec(config.hardware)
    spec.name = config.name
    spec.annotation = config.annotation
    spec.guestId = config.guest_os
    return spec
