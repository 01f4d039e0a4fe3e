"""Client configuration for pytasmota."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pytasmota.exceptions import TasmotaConfigError


def _env_number(env: Mapping[str, str], key: str, cast: type[int] | type[float]) -> int | float | None:
    value = env.get(key)
    if value is None:
        return None
    try:
        return cast(value.strip())
    except ValueError as exc:
        raise TasmotaConfigError(f"{key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class TasmotaConfig:
    """Client configuration.

    Parameters
    ----------
    host : str
        MQTT broker hostname.
    port : int
        MQTT broker port.
    username : str or None
        MQTT username for this client. Not the device password.
    password : str or None
        MQTT password for this client.
    client_id : str
        MQTT client identifier presented to the broker.
    keepalive : int
        MQTT keepalive in seconds.
    command_timeout : float
        Seconds to wait for the reply to a single-shot command.
    connect_timeout : float
        Seconds to wait for the broker's CONNACK.
    download_timeout : float
        Seconds to wait for each message of a config backup download.
    """

    host: str
    port: int = 1883
    username: str | None = None
    password: str | None = None
    client_id: str = "tasmota-client"
    keepalive: int = 60
    command_timeout: float = 1.0
    connect_timeout: float = 10.0
    download_timeout: float = 5.0

    @property
    def credentials(self) -> tuple[str, str] | None:
        if self.username is None:
            return None
        return self.username, self.password or ""

    @classmethod
    def from_env(cls, **overrides: Any) -> TasmotaConfig:
        """Create configuration from environment variables.

        Reads ``TASMOTA_MQTT_HOST`` and the optional ``TASMOTA_*``
        variables. Explicit keyword arguments override environment values.

        Raises
        ------
        TasmotaConfigError
            If no host is available or a numeric variable does not parse.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "TASMOTA_MQTT_HOST": "host",
            "TASMOTA_MQTT_USERNAME": "username",
            "TASMOTA_MQTT_PASSWORD": "password",
            "TASMOTA_MQTT_CLIENT_ID": "client_id",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "TASMOTA_MQTT_PORT": ("port", int),
            "TASMOTA_MQTT_KEEPALIVE": ("keepalive", int),
            "TASMOTA_COMMAND_TIMEOUT": ("command_timeout", float),
            "TASMOTA_CONNECT_TIMEOUT": ("connect_timeout", float),
            "TASMOTA_DOWNLOAD_TIMEOUT": ("download_timeout", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            if field_name in overrides:
                continue
            number = _env_number(env, env_key, cast)
            if number is not None:
                config_kwargs[field_name] = number

        config_kwargs.update(overrides)
        if not config_kwargs.get("host"):
            raise TasmotaConfigError("No MQTT host configured (set TASMOTA_MQTT_HOST or pass host=)")

        return cls(**config_kwargs)
