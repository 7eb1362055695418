"""Configuration loading and environment variable parsing for vmdriver."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from vmdriver.constants import (
    DEFAULT_VSPHERE_PORT,
    ENV_DATACENTER,
    ENV_HOST,
    ENV_INSECURE,
    ENV_PASSWORD,
    ENV_PORT,
    ENV_USER,
)
from vmdriver.exceptions import DriverError
from vmdriver.models import CloneConfig, ConnectionConfig, CreateConfig, DiskConfig, HardwareConfig
from vmdriver.utils import get_env, get_env_bool, parse_int_env, parse_size_to_kb

_HARDWARE_KEYS = {
    "cpus": int,
    "cpu_reservation": int,
    "cpu_limit": int,
    "ram": int,
    "ram_reservation": int,
    "ram_reserve_all": bool,
}
_DISK_KEYS = {"disk_size", "thin_provisioned", "controller_type"}
_CREATE_KEYS = {
    "name": str,
    "annotation": str,
    "folder": str,
    "host": str,
    "resource_pool": str,
    "datastore": str,
    "guest_os": str,
    "network": str,
    "network_adapter": str,
    "force": bool,
}
_CLONE_KEYS = {
    "name": str,
    "folder": str,
    "host": str,
    "resource_pool": str,
    "datastore": str,
    "linked_clone": bool,
}


def parse_env() -> ConnectionConfig:
    host = (get_env(ENV_HOST) or "").strip()
    username = (get_env(ENV_USER) or "").strip()
    password = get_env(ENV_PASSWORD) or ""
    missing = [name for name, value in ((ENV_HOST, host), (ENV_USER, username), (ENV_PASSWORD, password)) if not value]
    if missing:
        raise DriverError(f"Missing required environment variables: {', '.join(missing)}")
    return ConnectionConfig(
        host=host,
        username=username,
        password=password,
        insecure=get_env_bool(ENV_INSECURE, False),
        datacenter=(get_env(ENV_DATACENTER) or "").strip(),
        port=parse_int_env(ENV_PORT, str(DEFAULT_VSPHERE_PORT), min_val=1, max_val=65535),
    )


def load_build_config(config_path: Path) -> Dict:
    if not config_path.exists():
        raise DriverError(f"Build config missing: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        raise DriverError(f"Invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise DriverError(f"Build config {config_path} must be a mapping")
    return data


def _check_keys(section: str, data: Dict, allowed) -> None:
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise DriverError(f"Unknown {section} option(s): {', '.join(unknown)}")


def _typed(section: str, data: Dict, schema: Dict[str, type]) -> Dict:
    values = {}
    for key, expected in schema.items():
        if key not in data or data[key] is None:
            continue
        value = data[key]
        # bool is an int subclass; keep "cpus: true" out of integer fields
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise DriverError(f"{section}.{key} must be of type {expected.__name__} (got {value!r})")
        values[key] = value
    return values


def _section(section: str, data) -> Dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DriverError(f"{section} must be a mapping (got {type(data).__name__})")
    return data


def hardware_config_from_dict(data: Optional[Dict]) -> HardwareConfig:
    data = _section("hardware", data)
    _check_keys("hardware", data, _HARDWARE_KEYS)
    values = _typed("hardware", data, _HARDWARE_KEYS)
    if "ram" in values:
        values["ram_mb"] = values.pop("ram")
    return HardwareConfig(**values)


def disk_config_from_dict(data: Optional[Dict]) -> DiskConfig:
    data = _section("disk", data)
    _check_keys("disk", data, _DISK_KEYS)
    values = _typed("disk", data, {"thin_provisioned": bool, "controller_type": str})
    if data.get("disk_size") is not None:
        values["disk_size_kb"] = parse_size_to_kb(data["disk_size"])
    return DiskConfig(**values)


def create_config_from_dict(data: Dict) -> CreateConfig:
    _check_keys("create", data, set(_CREATE_KEYS) | {"hardware", "disk"})
    values = _typed("create", data, _CREATE_KEYS)
    if "name" not in values:
        raise DriverError("create.name is required")
    return CreateConfig(
        hardware=hardware_config_from_dict(data.get("hardware")),
        disk=disk_config_from_dict(data.get("disk")),
        **values,
    )


def clone_config_from_dict(data: Dict) -> CloneConfig:
    _check_keys("clone", data, _CLONE_KEYS)
    values = _typed("clone", data, _CLONE_KEYS)
    if "name" not in values:
        raise DriverError("clone.name is required")
    return CloneConfig(**values)
