"""Configuration management with Pydantic validation.

Supports three configuration sources (in priority order):
1. Environment variables (override individual keys)
2. YAML config file (mac2mqtt.yaml)
3. Default values
"""

import os
import re
from pathlib import Path
from typing import Optional, Literal
import yaml
from pydantic import BaseModel, Field, field_validator


DEFAULT_CONFIG_PATHS = [
    "mac2mqtt.yaml",
    "~/.config/mac2mqtt/mac2mqtt.yaml",
    "/etc/mac2mqtt/mac2mqtt.yaml",
]


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )
    file: Optional[Path] = Field(
        default=None,
        description="Log file path (optional)"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v):
        """Accept lowercase level names."""
        if isinstance(v, str):
            return v.upper()
        return v


class AppConfig(BaseModel):
    """Complete application configuration.

    The four ``mqtt_*`` keys are required and must be non-empty.
    """

    mqtt_ip: str = Field(
        ...,
        min_length=1,
        description="MQTT broker hostname or IP"
    )
    mqtt_port: int = Field(
        ...,
        ge=1,
        le=65535,
        description="MQTT broker port"
    )
    mqtt_user: str = Field(
        ...,
        min_length=1,
        description="MQTT username"
    )
    mqtt_password: str = Field(
        ...,
        min_length=1,
        description="MQTT password"
    )
    hostname: Optional[str] = Field(
        default=None,
        description="Override for the machine hostname used as host identity"
    )
    discovery_prefix: str = Field(
        default="homeassistant",
        min_length=1,
        description="Home Assistant MQTT discovery prefix"
    )
    volume_interval: float = Field(
        default=2.0,
        gt=0,
        le=3600,
        description="Volume and mute publish interval in seconds"
    )
    battery_interval: float = Field(
        default=60.0,
        gt=0,
        le=3600,
        description="Battery and power adapter publish interval in seconds"
    )
    settle_delay: float = Field(
        default=1.0,
        ge=0,
        le=30,
        description="Seconds to wait after a volume/mute change before reading it back"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings"
    )

    @field_validator("mqtt_ip", mode="before")
    @classmethod
    def strip_address(cls, v):
        """Trim whitespace around the broker address."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("mqtt_user", "mqtt_password", mode="before")
    @classmethod
    def reject_blank_credentials(cls, v, info):
        """Reject whitespace-only credentials; anything else is passed through unchanged."""
        if isinstance(v, str) and not v.strip():
            raise ValueError(f"{info.field_name} must not be blank")
        return v

    @field_validator("mqtt_port", mode="before")
    @classmethod
    def parse_port(cls, v):
        """Accept the port as a string ("1883") like the YAML file usually has it."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("mqtt_port must not be empty")
            return int(v)
        return v

    @field_validator("hostname", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None."""
        if v == "":
            return None
        return v

    @property
    def broker_address(self) -> str:
        """Broker address as host:port."""
        return f"{self.mqtt_ip}:{self.mqtt_port}"


# Environment variable mapping
ENV_MAPPING = {
    "MQTT_IP": ("mqtt_ip",),
    "MQTT_PORT": ("mqtt_port",),
    "MQTT_USER": ("mqtt_user",),
    "MQTT_PASSWORD": ("mqtt_password",),
    "MQTT_DISCOVERY_PREFIX": ("discovery_prefix",),
    "MAC2MQTT_HOSTNAME": ("hostname",),
    "VOLUME_INTERVAL": ("volume_interval", float),
    "BATTERY_INTERVAL": ("battery_interval", float),

    # Logging
    "LOG_LEVEL": ("logging", "level"),
}


def _get_env_value(env_var: str, mapping: tuple):
    """Get environment variable value with optional type conversion."""
    value = os.environ.get(env_var)
    if value is None:
        return None

    converter = mapping[1] if len(mapping) > 1 and callable(mapping[1]) else None
    if converter:
        try:
            return converter(value)
        except (ValueError, TypeError):
            return value
    return value


def _apply_env_overrides(raw_config: dict) -> dict:
    """Overlay environment variables on top of raw config values."""
    for env_var, mapping in ENV_MAPPING.items():
        value = _get_env_value(env_var, mapping)
        if value is None:
            continue
        if mapping[0] == "logging":
            section = raw_config.setdefault("logging", {}) or {}
            section[mapping[1]] = value
            raw_config["logging"] = section
        else:
            raw_config[mapping[0]] = value
    return raw_config


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables only.

    Returns:
        AppConfig with values from environment (or defaults)

    Raises:
        pydantic.ValidationError: If a required key is not set
    """
    return AppConfig(**_apply_env_overrides({}))


def load_config(config_path: str) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config validation fails
    """
    path = Path(config_path).expanduser()

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, "r") as f:
        raw_config = yaml.safe_load(f) or {}

    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration file must contain a mapping: {config_path}")

    # Support environment variable substitution
    raw_config = _substitute_env_vars(raw_config)
    raw_config = _apply_env_overrides(raw_config)

    return AppConfig(**raw_config)


def find_config_file() -> Optional[str]:
    """Return the first existing default config path, if any."""
    for candidate in DEFAULT_CONFIG_PATHS:
        if Path(candidate).expanduser().exists():
            return candidate
    return None


def get_config(config_path: Optional[str] = None) -> AppConfig:
    """Get configuration from config file or environment variables.

    Priority:
    1. Config file (explicit path, else the first default path found)
    2. Environment variables alone

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Validated AppConfig instance
    """
    if config_path:
        return load_config(config_path)

    found = find_config_file()
    if found:
        return load_config(found)

    return load_config_from_env()


_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|^\$([A-Za-z_][A-Za-z0-9_]*)$")


def _substitute_env_vars(config):
    """Recursively expand environment references in config values.

    ``${VAR}`` may appear anywhere in a string ("tcp://${BROKER}"); a bare
    ``$VAR`` only as the whole value. Unset variables are left as written.
    """
    if isinstance(config, dict):
        return {key: _substitute_env_vars(value) for key, value in config.items()}
    if isinstance(config, list):
        return [_substitute_env_vars(item) for item in config]
    if not isinstance(config, str):
        return config

    def expand(match):
        name = match.group(1) or match.group(2)
        return os.environ.get(name, match.group(0))

    return _ENV_REF.sub(expand, config)


def create_default_config() -> str:
    """Generate an example configuration as YAML string."""
    example = {
        "mqtt_ip": "192.168.1.10",
        "mqtt_port": "1883",
        "mqtt_user": "mac2mqtt",
        "mqtt_password": "changeme",
        "discovery_prefix": "homeassistant",
        "volume_interval": 2,
        "battery_interval": 60,
        "logging": {"level": "INFO"},
    }
    return yaml.dump(
        example,
        default_flow_style=False,
        sort_keys=False,
    )


def print_env_help() -> str:
    """Generate help text for environment variables."""
    lines = [
        "Environment Variables (override keys from mac2mqtt.yaml):",
        "",
        "  MQTT (required if not in the config file):",
        "    MQTT_IP               Broker hostname/IP",
        "    MQTT_PORT             Broker port",
        "    MQTT_USER             Username",
        "    MQTT_PASSWORD         Password",
        "",
        "  Optional:",
        "    MQTT_DISCOVERY_PREFIX HA discovery prefix (default: homeassistant)",
        "    MAC2MQTT_HOSTNAME     Host identity override (default: machine hostname)",
        "    VOLUME_INTERVAL       Volume/mute publish interval seconds (default: 2)",
        "    BATTERY_INTERVAL      Battery publish interval seconds (default: 60)",
        "",
        "  Logging:",
        "    LOG_LEVEL            DEBUG, INFO, WARNING, ERROR (default: INFO)",
    ]
    return "\n".join(lines)
