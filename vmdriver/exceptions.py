"""Custom exceptions for vmdriver."""


class DriverError(RuntimeError):
    """Raised on unrecoverable configuration or remote errors."""


class LookupFailure(DriverError):
    """A named inventory object (folder, host, pool, datastore, network, VM) is absent."""


class NetworkNotFound(LookupFailure):
    pass


class ControllerNotFound(LookupFailure):
    pass


class PreconditionFailure(DriverError):
    """The requested operation cannot start given the current inputs or remote state."""


class AlreadyExists(PreconditionFailure):
    pass


class NoSnapshotForLinkedClone(PreconditionFailure):
    pass


class UnsupportedControllerKind(PreconditionFailure):
    pass


class InvalidDiskSize(PreconditionFailure):
    pass


class DeviceOrderError(PreconditionFailure):
    """A device references a controller that is not part of the same device list."""


class NotImplementedFailure(DriverError):
    pass


class RemoteTaskFailure(DriverError):
    """The endpoint rejected a call or reported a task as failed."""

    def __init__(self, description: str, fault=None) -> None:
        self.description = description
        self.fault = fault
        self.msg = getattr(fault, "msg", None) or (str(fault) if fault is not None else "")
        super().__init__(f"{description} failed: {self.msg}" if self.msg else f"{description} failed")


class TimeoutFailure(DriverError):
    pass


class ShutdownTimeout(TimeoutFailure):
    pass


class IPTimeout(TimeoutFailure):
    pass


class CancellationFailure(DriverError):
    """The connection context was cancelled while waiting on the endpoint."""
