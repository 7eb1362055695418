"""Tests for vmdriver.configspec module."""

from __future__ import annotations

from vmdriver.configspec import create_config_spec, hardware_config_spec, is_unlimited
from vmdriver.constants import UNLIMITED
from vmdriver.models import CreateConfig, HardwareConfig


def _fields(spec):
    return (
        spec.numCPUs,
        spec.memoryMB,
        spec.cpuAllocation.reservation,
        spec.cpuAllocation.limit,
        spec.memoryAllocation.reservation,
        spec.memoryReservationLockedToMax,
        spec.name,
        spec.annotation,
        spec.guestId,
    )


class TestHardwareConfigSpec:
    def test_values_pass_through_unscaled(self):
        hw = HardwareConfig(cpus=4, cpu_reservation=500, cpu_limit=2000, ram_mb=8192, ram_reservation=1024)
        spec = hardware_config_spec(hw)
        assert spec.numCPUs == 4
        assert spec.memoryMB == 8192
        assert spec.cpuAllocation.reservation == 500
        assert spec.cpuAllocation.limit == 2000
        assert spec.memoryAllocation.reservation == 1024

    def test_compiling_twice_is_deterministic(self):
        hw = HardwareConfig(cpus=2, cpu_reservation=100, cpu_limit=300, ram_mb=1024, ram_reserve_all=True)
        first = hardware_config_spec(hw)
        second = hardware_config_spec(hw)
        assert first is not second
        assert _fields(first) == _fields(second)

    def test_zero_limit_is_unlimited(self):
        spec = hardware_config_spec(HardwareConfig(cpu_limit=0))
        assert spec.cpuAllocation.limit == UNLIMITED
        assert is_unlimited(spec.cpuAllocation)

    def test_limit_one_is_not_unlimited(self):
        spec = hardware_config_spec(HardwareConfig(cpu_limit=1))
        assert spec.cpuAllocation.limit == 1
        assert not is_unlimited(spec.cpuAllocation)

    def test_reserve_all_flag(self):
        assert hardware_config_spec(HardwareConfig(ram_reserve_all=True)).memoryReservationLockedToMax is True
        assert hardware_config_spec(HardwareConfig()).memoryReservationLockedToMax is False

    def test_identity_fields_not_set(self):
        spec = hardware_config_spec(HardwareConfig())
        assert spec.name is None
        assert spec.guestId is None


class TestCreateConfigSpec:
    def test_overlays_identity(self):
        cfg = CreateConfig(
            name="tpl1",
            hardware=HardwareConfig(cpus=2, ram_mb=2048),
            annotation="built by ci",
            guest_os="ubuntu64Guest",
        )
        spec = create_config_spec(cfg)
        assert spec.name == "tpl1"
        assert spec.annotation == "built by ci"
        assert spec.guestId == "ubuntu64Guest"
        assert spec.numCPUs == 2
        assert spec.memoryMB == 2048

    def test_matches_hardware_spec(self, default_create_config):
        create = create_config_spec(default_create_config)
        hardware = hardware_config_spec(default_create_config.hardware)
        assert _fields(create)[:6] == _fields(hardware)[:6]
