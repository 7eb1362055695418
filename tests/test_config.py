"""Tests for vmdriver.config module."""

from __future__ import annotations

import pytest
import yaml

from vmdriver.config import (
    clone_config_from_dict,
    create_config_from_dict,
    disk_config_from_dict,
    hardware_config_from_dict,
    load_build_config,
    parse_env,
)
from vmdriver.exceptions import DriverError, PreconditionFailure


@pytest.fixture
def create_config_file(tmp_path):
    """Create a temporary create config file."""
    config = {
        "name": "tpl1",
        "annotation": "ubuntu base",
        "datastore": "datastore1",
        "network": "VM Network",
        "guest_os": "ubuntu64Guest",
        "hardware": {"cpus": 2, "ram": 2048, "cpu_limit": 4000, "cpu_reservation": 1000},
        "disk": {"disk_size": "20G", "thin_provisioned": True, "controller_type": "pvscsi"},
    }
    config_path = tmp_path / "create.yaml"
    config_path.write_text(yaml.dump(config))
    return config_path


class TestParseEnv:
    def test_minimal(self, clean_env, mock_env):
        mock_env(VSPHERE_HOST="vc.example.com", VSPHERE_USER="admin", VSPHERE_PASSWORD="pw")
        cfg = parse_env()
        assert cfg.host == "vc.example.com"
        assert cfg.username == "admin"
        assert cfg.password == "pw"
        assert cfg.insecure is False
        assert cfg.port == 443
        assert cfg.datacenter == ""

    def test_all_options(self, clean_env, mock_env):
        mock_env(
            VSPHERE_HOST="vc",
            VSPHERE_USER="admin",
            VSPHERE_PASSWORD="pw",
            VSPHERE_INSECURE="yes",
            VSPHERE_PORT="8443",
            VSPHERE_DATACENTER="dc2",
        )
        cfg = parse_env()
        assert cfg.insecure is True
        assert cfg.port == 8443
        assert cfg.datacenter == "dc2"

    def test_missing_credentials(self, clean_env, mock_env):
        mock_env(VSPHERE_HOST="vc")
        with pytest.raises(DriverError, match="VSPHERE_USER, VSPHERE_PASSWORD"):
            parse_env()

    def test_invalid_port(self, clean_env, mock_env):
        mock_env(VSPHERE_HOST="vc", VSPHERE_USER="a", VSPHERE_PASSWORD="b", VSPHERE_PORT="0")
        with pytest.raises(DriverError, match="VSPHERE_PORT"):
            parse_env()


class TestLoadBuildConfig:
    def test_loads_mapping(self, create_config_file):
        data = load_build_config(create_config_file)
        assert data["name"] == "tpl1"

    def test_missing_file(self, tmp_path):
        with pytest.raises(DriverError, match="Build config missing"):
            load_build_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("name: [unclosed\n")
        with pytest.raises(DriverError, match="Invalid YAML"):
            load_build_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(DriverError, match="must be a mapping"):
            load_build_config(path)


class TestHardwareConfigFromDict:
    def test_ram_maps_to_ram_mb(self):
        hw = hardware_config_from_dict({"cpus": 4, "ram": 8192, "ram_reserve_all": True})
        assert hw.cpus == 4
        assert hw.ram_mb == 8192
        assert hw.ram_reserve_all is True

    def test_empty_gives_defaults(self):
        hw = hardware_config_from_dict(None)
        assert hw.cpus == 1
        assert hw.ram_mb == 512

    def test_unknown_key(self):
        with pytest.raises(DriverError, match="Unknown hardware option"):
            hardware_config_from_dict({"cpu": 2})

    def test_bool_rejected_for_int(self):
        with pytest.raises(DriverError, match="hardware.cpus"):
            hardware_config_from_dict({"cpus": True})

    def test_model_invariants_apply(self):
        with pytest.raises(PreconditionFailure):
            hardware_config_from_dict({"cpu_reservation": 2000, "cpu_limit": 1000})

    @pytest.mark.parametrize("section", [[1, 2], "cpus", 4])
    def test_section_must_be_mapping(self, section):
        with pytest.raises(DriverError, match="hardware must be a mapping"):
            create_config_from_dict({"name": "tpl1", "hardware": section})


class TestDiskConfigFromDict:
    def test_size_with_suffix(self):
        disk = disk_config_from_dict({"disk_size": "40G"})
        assert disk.disk_size_kb == 40 * 1024 * 1024

    def test_size_as_kb_integer(self):
        assert disk_config_from_dict({"disk_size": 4096}).disk_size_kb == 4096

    def test_wrong_type(self):
        with pytest.raises(DriverError, match="disk.thin_provisioned"):
            disk_config_from_dict({"thin_provisioned": "yes"})

    def test_section_must_be_mapping(self):
        with pytest.raises(DriverError, match="disk must be a mapping"):
            create_config_from_dict({"name": "tpl1", "disk": 5})


class TestCreateConfigFromDict:
    def test_full_file(self, create_config_file):
        cfg = create_config_from_dict(load_build_config(create_config_file))
        assert cfg.name == "tpl1"
        assert cfg.guest_os == "ubuntu64Guest"
        assert cfg.hardware.cpus == 2
        assert cfg.hardware.ram_mb == 2048
        assert cfg.hardware.cpu_limit == 4000
        assert cfg.disk.disk_size_kb == 20 * 1024 * 1024
        assert cfg.disk.controller_type == "pvscsi"
        assert cfg.force is False

    def test_name_required(self):
        with pytest.raises(DriverError, match="create.name is required"):
            create_config_from_dict({"network": "VM Network"})

    def test_unknown_top_level_key(self):
        with pytest.raises(DriverError, match="Unknown create option"):
            create_config_from_dict({"name": "tpl1", "cpus": 2})


class TestCloneConfigFromDict:
    def test_linked(self):
        cfg = clone_config_from_dict({"name": "clone1", "linked_clone": True, "datastore": "ds2"})
        assert cfg.linked_clone is True
        assert cfg.datastore == "ds2"

    def test_name_required(self):
        with pytest.raises(DriverError, match="clone.name is required"):
            clone_config_from_dict({"linked_clone": True})
