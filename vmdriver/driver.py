"""vSphere session, inventory lookup and VM creation for vmdriver."""

from __future__ import annotations

from typing import List, Optional

from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import vim, vmodl

from vmdriver.configspec import create_config_spec
from vmdriver.context import Context
from vmdriver.devices import (
    DeviceList,
    add_disk,
    add_disk_controller,
    add_network_adapter,
    add_optical_controller,
    device_change,
)
from vmdriver.exceptions import AlreadyExists, DriverError, LookupFailure, NetworkNotFound, RemoteTaskFailure
from vmdriver.models import ConnectionConfig, CreateConfig
from vmdriver.tasks import TaskExecutor
from vmdriver.utils import datastore_path, log, split_datastore_path
from vmdriver.vm import VirtualMachine


class Driver:
    """Entry point for inventory lookups and for creating or finding VMs."""

    def __init__(self, context: Context, executor: Optional[TaskExecutor] = None) -> None:
        self.context = context
        self.executor = executor or TaskExecutor(context)

    @classmethod
    def connect(cls, config: ConnectionConfig) -> "Driver":
        kwargs = {
            "host": config.host,
            "user": config.username,
            "pwd": config.password,
            "port": config.port,
        }
        if config.insecure:
            kwargs["disableSslCertValidation"] = True
        log("INFO", f"Connecting to {config.host}:{config.port} as {config.username}")
        try:
            si = SmartConnect(**kwargs)
        except vim.fault.InvalidLogin as exc:
            raise DriverError(f"Login to {config.host} failed: {exc.msg}") from exc
        except vmodl.MethodFault as exc:
            raise DriverError(f"Failed to connect to {config.host}: {exc.msg}") from exc
        except OSError as exc:
            raise DriverError(f"Failed to connect to {config.host}: {exc}") from exc

        try:
            datacenter = cls._select_datacenter(si.RetrieveContent(), config.datacenter)
        except DriverError:
            Disconnect(si)
            raise
        log("SUCCESS", f"Connected to {config.host} (datacenter '{datacenter.name}')")
        return cls(Context(si, datacenter))

    @staticmethod
    def _select_datacenter(content, name: str):
        datacenters = [entity for entity in content.rootFolder.childEntity if isinstance(entity, vim.Datacenter)]
        if not datacenters:
            raise LookupFailure("No datacenter found on the endpoint")
        if not name:
            return datacenters[0]
        for datacenter in datacenters:
            if datacenter.name == name:
                return datacenter
        raise LookupFailure(f"Datacenter '{name}' not found")

    def close(self) -> None:
        if self.context.service_instance is not None:
            Disconnect(self.context.service_instance)

    def __enter__(self) -> "Driver":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def datacenter(self):
        if self.context.datacenter is None:
            raise LookupFailure("Connection context has no datacenter")
        return self.context.datacenter

    def _objects(self, vimtype, container=None) -> List:
        self.context.check()
        view = self.context.content.viewManager.CreateContainerView(
            container or self.datacenter, [vimtype], True
        )
        try:
            return list(view.view)
        finally:
            view.Destroy()

    def _by_name(self, vimtype, name: str, label: str, container=None):
        matches = [obj for obj in self._objects(vimtype, container) if obj.name == name]
        if not matches:
            raise LookupFailure(f"{label} '{name}' not found")
        if len(matches) > 1:
            raise LookupFailure(f"{label} name '{name}' matches {len(matches)} objects; use a unique name")
        return matches[0]

    def new_vm(self, ref: vim.VirtualMachine) -> VirtualMachine:
        return VirtualMachine(self, ref)

    def find_vm(self, name: str) -> VirtualMachine:
        return self.new_vm(self._by_name(vim.VirtualMachine, name, "VM"))

    def find_folder(self, name: str):
        if not name:
            return self.datacenter.vmFolder
        path = f"{self.datacenter.name}/vm/{name.strip('/')}"
        folder = self.context.content.searchIndex.FindByInventoryPath(path)
        if not isinstance(folder, vim.Folder):
            raise LookupFailure(f"Folder '{name}' not found")
        return folder

    def find_host(self, name: str):
        if not name:
            return None
        return self._by_name(vim.HostSystem, name, "Host")

    def find_resource_pool(self, host, name: str):
        if host is not None:
            compute = host.parent
        else:
            computes = self._objects(vim.ComputeResource)
            if not computes:
                raise LookupFailure("No compute resource found in the datacenter")
            compute = computes[0]
        root = compute.resourcePool
        if not name or name == root.name:
            return root
        return self._by_name(vim.ResourcePool, name, "Resource pool", container=root)

    def find_datastore_or_default(self, name: str):
        if name:
            return self._by_name(vim.Datastore, name, "Datastore")
        datastores = list(self.datacenter.datastore)
        if len(datastores) != 1:
            raise LookupFailure(
                f"Datacenter has {len(datastores)} datastores; a datastore name must be specified"
            )
        return datastores[0]

    def find_network_or_default(self, name: str):
        try:
            if name:
                return self._by_name(vim.Network, name, "Network")
            networks = list(self.datacenter.network)
            if len(networks) != 1:
                raise LookupFailure(
                    f"Datacenter has {len(networks)} networks; a network name must be specified"
                )
            return networks[0]
        except LookupFailure as exc:
            raise NetworkNotFound(str(exc)) from exc

    def file_exists(self, datastore, path: str) -> bool:
        directory, filename = split_datastore_path(path)
        spec = vim.host.DatastoreBrowser.SearchSpec(matchPattern=[filename])
        try:
            result = self.executor.execute(
                lambda: datastore.browser.SearchDatastore_Task(
                    datastorePath=datastore_path(datastore.name, directory),
                    searchSpec=spec,
                ),
                f"Search {datastore_path(datastore.name, path)}",
            )
        except RemoteTaskFailure as exc:
            if isinstance(exc.fault, vim.fault.FileNotFound):
                return False
            raise
        return any(entry.path == filename for entry in (getattr(result, "file", None) or []))

    def create_vm(self, config: CreateConfig) -> VirtualMachine:
        spec = create_config_spec(config)

        folder = self.find_folder(config.folder)
        host = self.find_host(config.host)
        pool = self.find_resource_pool(host, config.resource_pool)
        datastore = self.find_datastore_or_default(config.datastore)

        if not config.force and self.file_exists(datastore, config.vmx_path):
            raise AlreadyExists(f"File '{datastore_path(datastore.name, config.vmx_path)}' already exists")

        devices = DeviceList()
        devices, _ = add_optical_controller(devices)
        devices, controller = add_disk_controller(devices, config.disk.controller_type)
        devices = add_disk(devices, controller, config.disk.disk_size_kb, config.disk.thin_provisioned)
        devices = add_network_adapter(devices, self.find_network_or_default, config.network, config.network_adapter)

        spec.deviceChange = device_change(devices)
        spec.files = vim.vm.FileInfo(vmPathName=datastore_path(datastore.name))

        log("INFO", f"Creating VM '{config.name}' on datastore '{datastore.name}'")
        vm = self.executor.execute_vm(
            lambda: folder.CreateVM_Task(config=spec, pool=pool, host=host),
            f"Create VM '{config.name}'",
            self.new_vm,
        )
        log("SUCCESS", f"Created VM '{config.name}'")
        return vm
