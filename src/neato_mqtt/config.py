"""Bridge settings: YAML config file overlaid by ``NEATO_*`` environment variables.

Config file layout::

    neato:
      name: kitchen
      serial_number: OPS01234-ABCDEF012345
      secret_key: 0123456789abcdef
      refresh_interval: 30
    mqtt:
      host: homeassistant.local
      port: 1883
      user: neato
      password: secret
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from neato_mqtt.const import BEEHIVE_API_BASE, DEFAULT_REFRESH_INTERVAL, NEATO_MQTT_CONN_DELAY, NUCLEO_API_BASE
from neato_mqtt.exceptions import NeatoConfigError
from neato_mqtt.logging_abstraction import get_logger
from neato_mqtt.mqtt.topics import topic_root

__all__ = ["BridgeSettings", "load_settings"]

logger = get_logger(__name__)

# setting name -> environment variable
_ENV_VARS: dict[str, str] = {
    "neato_name": "NEATO_NAME",
    "serial_number": "NEATO_SERIAL_NUMBER",
    "secret_key": "NEATO_SECRET_KEY",
    "email": "NEATO_EMAIL",
    "password": "NEATO_PASSWORD",
    "refresh_interval": "NEATO_REFRESH_INTERVAL",
    "nucleo_base_url": "NEATO_NUCLEO_BASE_URL",
    "nucleo_ca_file": "NEATO_NUCLEO_CA_FILE",
    "mqtt_host": "NEATO_MQTT_HOST",
    "mqtt_port": "NEATO_MQTT_PORT",
    "mqtt_user": "NEATO_MQTT_USER",
    "mqtt_pass": "NEATO_MQTT_PASS",
    "mqtt_use_tls": "NEATO_MQTT_USE_TLS",
    "mqtt_tls_ca_file": "NEATO_MQTT_TLS_CA_FILE",
    "mqtt_tls_insecure": "NEATO_MQTT_TLS_INSECURE",
}

# (yaml section, yaml key) -> setting name
_YAML_KEYS: dict[tuple[str, str], str] = {
    ("neato", "name"): "neato_name",
    ("neato", "serial_number"): "serial_number",
    ("neato", "secret_key"): "secret_key",
    ("neato", "email"): "email",
    ("neato", "password"): "password",
    ("neato", "refresh_interval"): "refresh_interval",
    ("neato", "nucleo_base_url"): "nucleo_base_url",
    ("neato", "nucleo_ca_file"): "nucleo_ca_file",
    ("mqtt", "host"): "mqtt_host",
    ("mqtt", "port"): "mqtt_port",
    ("mqtt", "user"): "mqtt_user",
    ("mqtt", "password"): "mqtt_pass",
    ("mqtt", "use_tls"): "mqtt_use_tls",
    ("mqtt", "tls_ca_file"): "mqtt_tls_ca_file",
    ("mqtt", "tls_insecure"): "mqtt_tls_insecure",
    ("mqtt", "conn_delay"): "mqtt_conn_delay",
}


class BridgeSettings(BaseModel):
    """Everything the bridge needs to reach the robot and the broker."""

    model_config = ConfigDict(frozen=True, extra="forbid", coerce_numbers_to_str=True)

    neato_name: str = "neato"
    serial_number: str | None = None
    secret_key: str | None = None
    email: str | None = None
    password: str | None = None
    refresh_interval: int = Field(default=DEFAULT_REFRESH_INTERVAL, gt=0)
    nucleo_base_url: str = NUCLEO_API_BASE
    nucleo_ca_file: str | None = None
    beehive_base_url: str = BEEHIVE_API_BASE

    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_user: str | None = None
    mqtt_pass: str | None = None
    mqtt_use_tls: bool = False
    mqtt_tls_ca_file: str | None = None
    mqtt_tls_insecure: bool = False
    mqtt_conn_delay: int = NEATO_MQTT_CONN_DELAY

    @property
    def topic_root(self) -> str:
        return topic_root(self.neato_name)

    @property
    def has_robot_credentials(self) -> bool:
        return bool(self.serial_number and self.secret_key)


def _read_yaml(config_file: Path) -> dict[str, Any]:
    with config_file.open(encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}
    if not isinstance(config_data, dict):
        msg = f"Config file {config_file} must contain a mapping"
        raise NeatoConfigError(msg)

    values: dict[str, Any] = {}
    for (section, key), setting in _YAML_KEYS.items():
        section_data = config_data.get(section) or {}
        if isinstance(section_data, dict) and section_data.get(key) is not None:
            values[setting] = section_data[key]
    return values


def _read_env(environ: Mapping[str, str]) -> dict[str, Any]:
    return {setting: environ[var] for setting, var in _ENV_VARS.items() if environ.get(var)}


def load_settings(config_file: Path | None = None, environ: Mapping[str, str] | None = None) -> BridgeSettings:
    """Build settings from an optional YAML file, then environment overrides.

    Raises:
        NeatoConfigError: The file cannot be parsed or a value is invalid

    """
    values: dict[str, Any] = {}
    if config_file is not None:
        if config_file.exists():
            logger.info("Loading configuration", extra={"config_path": str(config_file)})
            try:
                values.update(_read_yaml(config_file))
            except yaml.YAMLError as e:
                msg = f"Failed to parse config file {config_file}: {e}"
                raise NeatoConfigError(msg) from e
        else:
            logger.warning("Configuration file not found, using environment only", extra={"config_path": str(config_file)})

    values.update(_read_env(os.environ if environ is None else environ))

    try:
        return BridgeSettings(**values)
    except ValidationError as e:
        msg = f"Invalid configuration: {e}"
        raise NeatoConfigError(msg) from e
