"""Utility functions for vmdriver."""

from __future__ import annotations

import os
from typing import Optional

from vmdriver.constants import (
    _LOG_VERBOSE,
    DISK_SIZE_RE,
    DISK_SIZE_UNITS_KB,
    TRUTHY,
)
from vmdriver.exceptions import DriverError


def log(level: str, message: str) -> None:
    """Lightweight structured logging with coloured level tags."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def parse_int_env(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = int(raw)
    except ValueError:
        raise DriverError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise DriverError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise DriverError(f"{name} must be <= {max_val} (got {value})")
    return value


def parse_size_to_kb(raw) -> int:
    """Convert an integer KB count or a '20G'-style string into kilobytes."""
    if isinstance(raw, bool):
        raise DriverError(f"Invalid disk size {raw!r}")
    if isinstance(raw, int):
        return raw
    match = DISK_SIZE_RE.match(str(raw).strip())
    if not match:
        raise DriverError(
            f"Invalid disk size '{raw}'. Use KB as an integer or a number with suffix K, M, G, T (e.g. '20G')"
        )
    number, suffix = match.groups()
    return int(number) * DISK_SIZE_UNITS_KB[suffix.upper()]


def datastore_path(datastore_name: str, path: str = "") -> str:
    """Format a datastore path the way the endpoint expects: '[ds] dir/file'."""
    if not path:
        return f"[{datastore_name}]"
    return f"[{datastore_name}] {path}"


def split_datastore_path(path: str) -> tuple:
    """Split 'dir/file.vmx' into ('dir', 'file.vmx'); a bare file has an empty directory."""
    head, _, tail = path.rpartition("/")
    return head, tail
