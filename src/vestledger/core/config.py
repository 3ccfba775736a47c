"""
VestLedger Configuration Manager

Centralized configuration management supporting:
- Environment-based configs (dev/staging/prod)
- Config file loading (YAML/JSON)
- Programmatic override support
- Environment variable support (VESTLEDGER_*)
- Config validation
"""

import json
import os
from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from .constants import CLIFF_DURATION, RELEASE_INTERVAL, VESTING_DURATION

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

ENV_PREFIX = "VESTLEDGER_"


class Environment(Enum):
    """Environment types"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTNET = "testnet"


@dataclass
class VestingConfig:
    """Release schedule settings"""
    cliff_duration: int = CLIFF_DURATION  # seconds after start date
    vesting_duration: int = VESTING_DURATION  # seconds after the cliff
    release_interval: int = RELEASE_INTERVAL  # 0 = continuous

    def validate(self):
        """Validate release schedule configuration"""
        for name in ("cliff_duration", "vesting_duration", "release_interval"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"Invalid {name}: {value!r}. Must be an integer")
        if self.cliff_duration < 0:
            raise ValueError(f"Invalid cliff_duration: {self.cliff_duration}. Must be >= 0")
        if self.vesting_duration < 1:
            raise ValueError(f"Invalid vesting_duration: {self.vesting_duration}. Must be >= 1")
        if self.release_interval < 0:
            raise ValueError(f"Invalid release_interval: {self.release_interval}. Must be >= 0")
        if self.release_interval > self.vesting_duration:
            raise ValueError(
                f"Invalid release_interval: {self.release_interval}. "
                f"Must not exceed vesting_duration ({self.vesting_duration})"
            )


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str = "INFO"
    log_file: Optional[str] = None
    environment: str = "development"
    enable_console: bool = True

    def validate(self):
        """Validate logging configuration"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if not isinstance(self.level, str) or self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}. Must be one of {valid_levels}")


class ConfigManager:
    """
    Configuration Manager for VestLedger

    Handles loading, validation, and access to configuration settings
    from multiple sources with proper precedence:
    1. Programmatic overrides (highest priority)
    2. Environment variables (VESTLEDGER_*)
    3. Environment-specific config files
    4. Default config file
    5. Built-in defaults (lowest priority)
    """

    def __init__(self,
                 environment: Optional[str] = None,
                 config_dir: Optional[str] = None,
                 overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize Configuration Manager

        Args:
            environment: Environment name (development/staging/production/testnet)
            config_dir: Directory containing config files
            overrides: Dotted-key overrides, e.g. {"vesting.cliff_duration": 60}
        """
        load_dotenv()

        self.environment = self._determine_environment(environment)
        self.config_dir = Path(config_dir).resolve() if config_dir else DEFAULT_CONFIG_DIR
        self.overrides = overrides or {}

        self.vesting: VestingConfig = None
        self.logging: LoggingConfig = None

        self._raw_config: Dict[str, Any] = {}

        self._load_configuration()

    def _determine_environment(self, environment: Optional[str]) -> Environment:
        """
        Determine the environment to use

        Priority:
        1. Passed environment parameter
        2. VESTLEDGER_ENVIRONMENT environment variable
        3. Default to DEVELOPMENT
        """
        env_str = (environment or os.getenv("VESTLEDGER_ENVIRONMENT", "development")).lower()

        env_mapping = {
            "dev": Environment.DEVELOPMENT,
            "development": Environment.DEVELOPMENT,
            "staging": Environment.STAGING,
            "stage": Environment.STAGING,
            "prod": Environment.PRODUCTION,
            "production": Environment.PRODUCTION,
            "testnet": Environment.TESTNET,
            "test": Environment.TESTNET,
        }

        return env_mapping.get(env_str, Environment.DEVELOPMENT)

    def _load_configuration(self):
        """Load configuration from all sources with proper precedence"""
        default_config = self._load_config_file("default")
        env_config = self._load_config_file(self.environment.value)

        merged_config = self._merge_configs(default_config, env_config)
        merged_config = self._apply_env_variables(merged_config)
        merged_config = self._apply_overrides(merged_config)

        self._raw_config = merged_config

        self._parse_configuration(merged_config)
        self._validate_configuration()

    def _load_config_file(self, filename: str) -> Dict[str, Any]:
        """
        Load configuration from YAML or JSON file

        Args:
            filename: Config filename (without extension)

        Returns:
            Configuration dictionary, empty if no file exists
        """
        yaml_path = self.config_dir / f"{filename}.yaml"
        if yaml_path.exists():
            with open(yaml_path, 'r') as f:
                return yaml.safe_load(f) or {}

        json_path = self.config_dir / f"{filename}.json"
        if json_path.exists():
            with open(json_path, 'r') as f:
                return json.load(f)

        return {}

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_variables(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variable overrides (VESTLEDGER_*)

        Environment variables format:
        VESTLEDGER_SECTION_KEY=value

        Example:
        VESTLEDGER_VESTING_CLIFF_DURATION=600
        VESTLEDGER_LOGGING_LEVEL=DEBUG
        """
        result = self._merge_configs({}, config)

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            if key == "VESTLEDGER_ENVIRONMENT":
                continue

            parts = key[len(ENV_PREFIX):].lower().split("_")
            if len(parts) < 2:
                continue

            section = parts[0]
            config_key = "_".join(parts[1:])

            if section not in ("vesting", "logging"):
                continue
            if not isinstance(result.get(section), dict):
                result[section] = {}
            result[section][config_key] = self._parse_env_value(value)

        return result

    def _parse_env_value(self, value: str) -> Union[str, int, float, bool]:
        """Parse environment variable value to appropriate type"""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _apply_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply dotted-key programmatic overrides"""
        result = self._merge_configs({}, config)

        for key, value in self.overrides.items():
            parts = key.split(".")
            if len(parts) == 1:
                result[key] = value
            elif len(parts) == 2:
                section, config_key = parts
                if not isinstance(result.get(section), dict):
                    result[section] = {}
                result[section][config_key] = value
            else:
                raise ValueError(f"Invalid override key: {key}. Use 'section.key'")

        return result

    def _parse_configuration(self, config: Dict[str, Any]):
        """Parse configuration dictionary into typed objects"""
        self.vesting = self._build_section(VestingConfig, "vesting", config.get("vesting"))
        self.logging = self._build_section(LoggingConfig, "logging", config.get("logging"))

    def _build_section(self, section_cls, section: str, values: Any):
        """Instantiate a section dataclass, rejecting keys it does not define"""
        if values is None:
            values = {}
        if not isinstance(values, dict):
            raise ValueError(f"Invalid {section} section: expected a mapping, got {values!r}")

        known = {f.name for f in fields(section_cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(
                f"Unknown {section} setting(s): {', '.join(unknown)}. "
                f"Valid keys: {', '.join(sorted(known))}"
            )
        return section_cls(**values)

    def _validate_configuration(self):
        """Validate all configuration sections"""
        self.vesting.validate()
        self.logging.validate()

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dotted key

        Args:
            key: Configuration key (e.g., "vesting.cliff_duration")
            default: Default value if key not found
        """
        value: Any = self._raw_config
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def to_dict(self) -> Dict[str, Any]:
        """Export typed configuration as dictionary"""
        return {
            "environment": self.environment.value,
            "vesting": asdict(self.vesting),
            "logging": asdict(self.logging),
        }


def load_config(environment: Optional[str] = None,
                config_dir: Optional[str] = None,
                overrides: Optional[Dict[str, Any]] = None) -> ConfigManager:
    """Convenience constructor mirroring ConfigManager's arguments."""
    return ConfigManager(environment=environment, config_dir=config_dir, overrides=overrides)
