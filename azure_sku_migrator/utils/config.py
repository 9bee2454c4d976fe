"""Configuration loading and management"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import asdict, fields

from ..core.errors import ConfigurationError
from ..core.models import MigrationConfiguration
from ..utils.logger import setup_logger

ENV_PREFIX = "AZURE_SKU_MIGRATOR_"
REPORT_FORMATS = ("json", "csv", "table")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Nested YAML sections are flattened to "<section>_<key>"; these map them onto field names
SECTION_ALIASES = {
    "migration_continue_on_error": "continue_on_error",
    "migration_dry_run": "dry_run",
    "migration_force": "force",
    "migration_skip_dependency_check": "skip_dependency_check",
    "migration_pacing_delay_seconds": "pacing_delay_seconds",
    "migration_snapshot_retry_wait_seconds": "snapshot_retry_wait_seconds",
    "migration_operation_timeout_seconds": "operation_timeout_seconds",
    "backup_directory": "backup_directory",
    "report_format": "report_format",
    "report_path": "report_path",
    "report_html_path": "html_report_path",
    "logging_level": "log_level",
    "logging_to_file": "log_to_file",
}


class ConfigurationLoader:
    """Load and manage configuration from various sources"""

    def __init__(self):
        self.logger = setup_logger(self.__class__.__name__)

    def load_configuration(
        self,
        config_file: Optional[str] = None,
        **overrides
    ) -> MigrationConfiguration:
        """Load configuration from file, environment variables and overrides.

        Precedence, lowest first: defaults, YAML file, environment, overrides.
        ``None`` overrides are ignored so unset CLI options fall through.
        """

        config_dict = asdict(MigrationConfiguration())

        if config_file:
            if not Path(config_file).exists():
                raise ConfigurationError(f"Configuration file not found: {config_file}")
            config_dict.update(self._load_from_file(config_file))
        else:
            config_dict.update(self._load_default_config())

        config_dict.update(self._load_from_environment())
        config_dict.update({k: v for k, v in overrides.items() if v is not None})

        known = {f.name for f in fields(MigrationConfiguration)}
        unknown = sorted(set(config_dict) - known)
        if unknown:
            self.logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        config = MigrationConfiguration(**{k: v for k, v in config_dict.items() if k in known})
        self._validate_configuration(config)
        return config

    def _load_from_file(self, config_file: str) -> Dict[str, Any]:
        """Load configuration from YAML file"""

        config_path = Path(config_file)
        if config_path.suffix.lower() not in ['.yml', '.yaml']:
            raise ConfigurationError(f"Unsupported config file format: {config_path.suffix}")

        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load configuration file {config_file}: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Configuration file {config_file} must contain a mapping")

        self.logger.info(f"Loaded configuration from: {config_file}")
        flattened = self._flatten_config(config_data)
        return {SECTION_ALIASES.get(key, key): value for key, value in flattened.items()}

    def _load_default_config(self) -> Dict[str, Any]:
        """Try to load from default configuration locations"""

        default_locations = [
            "azure_sku_migrator.yml",
            "azure_sku_migrator.yaml",
            os.path.expanduser("~/.azure_sku_migrator.yml"),
            os.path.expanduser("~/.config/azure_sku_migrator/config.yml"),
        ]

        for location in default_locations:
            if os.path.exists(location):
                return self._load_from_file(location)

        return {}

    def _load_from_environment(self) -> Dict[str, Any]:
        """Load configuration from AZURE_SKU_MIGRATOR_* environment variables"""

        env_config = {}
        parsers = {
            'continue_on_error': self._parse_bool,
            'dry_run': self._parse_bool,
            'force': self._parse_bool,
            'skip_dependency_check': self._parse_bool,
            'backup_directory': str,
            'pacing_delay_seconds': float,
            'snapshot_retry_wait_seconds': float,
            'operation_timeout_seconds': int,
            'report_format': str.lower,
            'report_path': str,
            'html_report_path': str,
            'log_level': str.upper,
            'log_to_file': self._parse_bool,
        }

        for config_key, parser in parsers.items():
            env_var = ENV_PREFIX + config_key.upper()
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                env_config[config_key] = parser(value)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_var}={value}: {e}") from e
            self.logger.debug(f"Loaded {config_key} from environment: {value}")

        return env_config

    def _flatten_config(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Flatten nested configuration dictionary"""

        flattened = {}

        def _flatten(obj, parent_key=''):
            if isinstance(obj, dict):
                for key, value in obj.items():
                    new_key = f"{parent_key}_{key}" if parent_key else key
                    _flatten(value, new_key)
            else:
                flattened[parent_key] = obj

        _flatten(config_data)
        return flattened

    def _parse_bool(self, value: str) -> bool:
        """Parse string into boolean"""
        return value.lower() in ('true', '1', 'yes', 'on', 'enabled')

    def _validate_configuration(self, config: MigrationConfiguration) -> None:
        """Validate configuration values"""

        if config.pacing_delay_seconds < 0:
            raise ConfigurationError("Pacing delay cannot be negative")

        if config.snapshot_retry_wait_seconds < 0:
            raise ConfigurationError("Snapshot retry wait cannot be negative")

        if config.operation_timeout_seconds < 1:
            raise ConfigurationError("Operation timeout must be at least 1 second")

        if config.report_format not in REPORT_FORMATS:
            raise ConfigurationError(
                f"Unknown report format '{config.report_format}', expected one of {', '.join(REPORT_FORMATS)}"
            )

        if config.log_level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level '{config.log_level}'")

        if not config.backup_directory:
            raise ConfigurationError("Backup directory must be set")

        if config.pacing_delay_seconds == 0 and not config.dry_run:
            self.logger.warning("Pacing delay is 0; provider throttling is more likely")

        if config.skip_dependency_check:
            self.logger.warning("Dependency checks are disabled for this run")

        self.logger.debug("Configuration validation completed")

    def save_configuration(self, config: MigrationConfiguration, output_file: str) -> None:
        """Save configuration to file"""

        nested_config = {
            'migration': {
                'continue_on_error': config.continue_on_error,
                'dry_run': config.dry_run,
                'force': config.force,
                'skip_dependency_check': config.skip_dependency_check,
                'pacing_delay_seconds': config.pacing_delay_seconds,
                'snapshot_retry_wait_seconds': config.snapshot_retry_wait_seconds,
                'operation_timeout_seconds': config.operation_timeout_seconds,
            },
            'backup': {
                'directory': config.backup_directory,
            },
            'report': {
                'format': config.report_format,
                'path': config.report_path,
                'html_path': config.html_report_path,
            },
            'logging': {
                'level': config.log_level,
                'to_file': config.log_to_file,
            },
        }

        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w') as f:
            yaml.dump(nested_config, f, default_flow_style=False, indent=2, sort_keys=False)

        self.logger.info(f"Configuration saved to: {output_file}")


def create_sample_config(output_file: str = "azure_sku_migrator_sample.yml") -> Path:
    """Create a sample configuration file populated with the defaults"""

    output_path = Path(output_file)
    ConfigurationLoader().save_configuration(MigrationConfiguration(), str(output_path))

    body = output_path.read_text()
    with open(output_path, 'w') as f:
        f.write("# Azure SKU Migrator Configuration\n")
        f.write("# Values here are overridden by AZURE_SKU_MIGRATOR_* environment variables\n")
        f.write("# and by command line options.\n\n")
        f.write(body)

    return output_path
