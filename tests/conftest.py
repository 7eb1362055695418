"""Shared test fixtures: fake connection context, tasks and VM references."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from pyVmomi import vim

from vmdriver.context import Context
from vmdriver.driver import Driver
from vmdriver.models import CreateConfig, DiskConfig, HardwareConfig
from vmdriver.tasks import TaskExecutor


def task_info(state, result=None, error=None):
    return SimpleNamespace(state=state, result=result, error=error)


@pytest.fixture
def make_task():
    """Build a fake vim.Task whose ``info`` walks through the given states."""

    def _make(result=None, error=None, pending=0):
        infos = [task_info(vim.TaskInfo.State.running) for _ in range(pending)]
        if error is not None:
            infos.append(task_info(vim.TaskInfo.State.error, error=error))
        else:
            infos.append(task_info(vim.TaskInfo.State.success, result=result))
        task = MagicMock()
        seq = iter(infos)
        last = infos[-1]
        type(task).info = property(lambda self: next(seq, last))
        return task

    return _make


@pytest.fixture
def datacenter():
    dc = MagicMock(spec=vim.Datacenter)
    dc.name = "dc1"
    dc.vmFolder = MagicMock(spec=vim.Folder)
    dc.datastore = []
    dc.network = []
    return dc


@pytest.fixture
def context(datacenter):
    return Context(MagicMock(), datacenter=datacenter)


@pytest.fixture
def content(context):
    """The RetrieveContent() result every remote call of ``context`` sees."""
    return context.service_instance.RetrieveContent.return_value


@pytest.fixture
def driver(context):
    return Driver(context, TaskExecutor(context, poll_interval=0.001, max_interval=0.001))


@pytest.fixture
def set_properties(content):
    """Program the property collector to answer with ``values`` for any VM query."""

    def _set(values):
        prop_set = [SimpleNamespace(name=key, val=value) for key, value in values.items()]
        content.propertyCollector.RetrieveContents.return_value = [SimpleNamespace(propSet=prop_set)]
        return content.propertyCollector.RetrieveContents

    return _set


@pytest.fixture
def vm_ref():
    ref = MagicMock(spec=vim.VirtualMachine)
    ref._moId = "vm-42"
    return ref


def named(vimtype, name, **attrs):
    obj = MagicMock(spec=vimtype)
    obj.name = name
    for key, value in attrs.items():
        setattr(obj, key, value)
    return obj


@pytest.fixture
def make_named():
    return named


@pytest.fixture
def inventory():
    """A resolved folder/host/pool/datastore/network set."""
    return SimpleNamespace(
        folder=named(vim.Folder, "vm"),
        host=named(vim.HostSystem, "esxi-01"),
        pool=named(vim.ResourcePool, "Resources"),
        datastore=named(vim.Datastore, "datastore1"),
        network=named(vim.Network, "VM Network"),
    )


@pytest.fixture
def default_create_config() -> CreateConfig:
    return CreateConfig(
        name="tpl1",
        hardware=HardwareConfig(cpus=2, ram_mb=2048),
        disk=DiskConfig(disk_size_kb=20 * 1024 * 1024, thin_provisioned=True, controller_type="pvscsi"),
        network="VM Network",
    )


@pytest.fixture
def mock_env(monkeypatch):
    """Helper to set environment variables for tests."""

    def _set(**kwargs):
        for key, value in kwargs.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, str(value))

    return _set


_VSPHERE_ENV_VARS = [
    "VSPHERE_HOST",
    "VSPHERE_USER",
    "VSPHERE_PASSWORD",
    "VSPHERE_INSECURE",
    "VSPHERE_PORT",
    "VSPHERE_DATACENTER",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Clear every environment variable that parse_env() reads."""
    for key in _VSPHERE_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
