"""Global constants for vmdriver."""

from __future__ import annotations

import os
import re

TRUTHY = {"1", "true", "yes", "on"}

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

# ResourceAllocationInfo.limit value the endpoint reads as "no limit".
UNLIMITED = -1

DEFAULT_GUEST_OS = "otherGuest"
DEFAULT_NETWORK_ADAPTER = "e1000"
DEFAULT_CONTROLLER_TYPE = "scsi"
DEFAULT_VSPHERE_PORT = 443

# Device keys generated for a new composition start here and decrease.
FIRST_DEVICE_KEY = -200

SCSI_CONTROLLER_TYPES = {
    "scsi": "VirtualLsiLogicController",
    "lsilogic": "VirtualLsiLogicController",
    "lsilogic-sas": "VirtualLsiLogicSASController",
    "buslogic": "VirtualBusLogicController",
    "pvscsi": "ParaVirtualSCSIController",
}
MAX_SCSI_CONTROLLERS = 4
SCSI_UNITS_PER_CONTROLLER = 16
SCSI_RESERVED_UNIT = 7  # the controller's own slot

MAX_IDE_CONTROLLERS = 2
IDE_UNITS_PER_CONTROLLER = 2

NETWORK_ADAPTER_TYPES = {
    "e1000": "VirtualE1000",
    "e1000e": "VirtualE1000e",
    "vmxnet2": "VirtualVmxnet2",
    "vmxnet3": "VirtualVmxnet3",
    "pcnet32": "VirtualPCNet32",
}

DISK_MODE_PERSISTENT = "persistent"
DISK_MOVE_LINKED = "createNewChildDiskBacking"

# Polling bounds (seconds)
TASK_POLL_INTERVAL = 0.5
TASK_POLL_MAX_INTERVAL = 5.0
SHUTDOWN_POLL_INTERVAL = 1.0
IP_POLL_INTERVAL = 5.0
IP_WAIT_TIMEOUT = 30 * 60

DISK_SIZE_RE = re.compile(r"^(\d+)([KMGTkmgt]?)$")
DISK_SIZE_UNITS_KB = {"": 1, "K": 1, "M": 1024, "G": 1024**2, "T": 1024**3}

ENV_HOST = "VSPHERE_HOST"
ENV_USER = "VSPHERE_USER"
ENV_PASSWORD = "VSPHERE_PASSWORD"
ENV_INSECURE = "VSPHERE_INSECURE"
ENV_PORT = "VSPHERE_PORT"
ENV_DATACENTER = "VSPHERE_DATACENTER"

_SENSITIVE_FIELDS = {"password"}
