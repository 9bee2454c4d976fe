import os

import pytest
import yaml

from azure_sku_migrator.core.errors import ConfigurationError
from azure_sku_migrator.core.models import MigrationConfiguration
from azure_sku_migrator.utils.config import ConfigurationLoader, create_sample_config


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Run from an empty directory with no AZURE_SKU_MIGRATOR_* variables"""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in list(os.environ):
        if key.startswith("AZURE_SKU_MIGRATOR_"):
            monkeypatch.delenv(key)


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return str(path)


def test_defaults_without_any_source():
    config = ConfigurationLoader().load_configuration()

    assert config == MigrationConfiguration()
    assert not config.continue_on_error
    assert config.pacing_delay_seconds == 5.0


def test_nested_yaml_sections_are_flattened(tmp_path):
    config_file = write_yaml(tmp_path / "migrator.yml", {
        "migration": {"continue_on_error": True, "pacing_delay_seconds": 1.5},
        "backup": {"directory": "/var/backups/sku"},
        "report": {"format": "csv", "html_path": "out/report.html"},
        "logging": {"level": "DEBUG"},
    })

    config = ConfigurationLoader().load_configuration(config_file)

    assert config.continue_on_error
    assert config.pacing_delay_seconds == 1.5
    assert config.backup_directory == "/var/backups/sku"
    assert config.report_format == "csv"
    assert config.html_report_path == "out/report.html"
    assert config.log_level == "DEBUG"


def test_environment_overrides_file_and_overrides_win(tmp_path, monkeypatch):
    config_file = write_yaml(tmp_path / "migrator.yml", {"migration": {"pacing_delay_seconds": 1.0}})
    monkeypatch.setenv("AZURE_SKU_MIGRATOR_PACING_DELAY_SECONDS", "3")
    monkeypatch.setenv("AZURE_SKU_MIGRATOR_FORCE", "yes")

    loader = ConfigurationLoader()
    from_env = loader.load_configuration(config_file)
    overridden = loader.load_configuration(config_file, pacing_delay_seconds=0.5, force=None)

    assert from_env.pacing_delay_seconds == 3.0
    assert from_env.force
    assert overridden.pacing_delay_seconds == 0.5
    assert overridden.force


def test_default_location_is_used(tmp_path):
    write_yaml(tmp_path / "azure_sku_migrator.yml", {"dry_run": True})

    assert ConfigurationLoader().load_configuration().dry_run


@pytest.mark.parametrize("overrides", [
    {"pacing_delay_seconds": -1},
    {"snapshot_retry_wait_seconds": -5},
    {"operation_timeout_seconds": 0},
    {"report_format": "xml"},
    {"log_level": "LOUD"},
])
def test_invalid_values_raise(overrides):
    with pytest.raises(ConfigurationError):
        ConfigurationLoader().load_configuration(**overrides)


def test_invalid_environment_value_raises(monkeypatch):
    monkeypatch.setenv("AZURE_SKU_MIGRATOR_PACING_DELAY_SECONDS", "soon")

    with pytest.raises(ConfigurationError):
        ConfigurationLoader().load_configuration()


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigurationError):
        ConfigurationLoader().load_configuration(str(tmp_path / "nope.yml"))


def test_sample_config_loads_back_to_defaults(tmp_path):
    path = create_sample_config(str(tmp_path / "sample.yml"))

    assert path.read_text().startswith("# Azure SKU Migrator Configuration")
    assert ConfigurationLoader().load_configuration(str(path)) == MigrationConfiguration()
