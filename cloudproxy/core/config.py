import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from omegaconf import OmegaConf
from omegaconf.errors import OmegaConfBaseException

from cloudproxy.cli.parsing import parse_port_parameter, parse_regions_parameter
from cloudproxy.constants import (
    ALL_REGIONS,
    DEFAULT_INSTANCE_COUNT,
    DEFAULT_KEY_LOCATION,
    DEFAULT_NAME_PREFIX,
    DEFAULT_PROVIDER,
    DEFAULT_START_PORT,
    MAX_INSTANCES_WITHOUT_FORCE,
    MAX_VALID_PORT,
    PROVISION_WAIT_SECONDS,
)
from cloudproxy.core.exceptions import ConfigError
from cloudproxy.providers import get_provider_defaults, list_providers

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = {"digitalocean": "DIGITALOCEAN_TOKEN"}
"""Environment variables consulted when a provider token is not configured."""


@dataclass(frozen=True)
class ProxyConfig:
    """Validated run configuration, built once and passed to every component."""

    provider: str
    key: str | None
    token: str | None = None
    key_location: str = DEFAULT_KEY_LOCATION
    count: int = DEFAULT_INSTANCE_COUNT
    name: str = DEFAULT_NAME_PREFIX
    regions: str = ALL_REGIONS
    force: bool = False
    start_tcp: int = DEFAULT_START_PORT
    ssh_username: str = "root"
    wait: float = PROVISION_WAIT_SECONDS
    size: str | None = None
    image: str | None = None

    @property
    def identity(self) -> str:
        """Expanded path of the SSH private key."""
        return str(Path(self.key_location).expanduser())


class ConfigLoader:
    """Load YAML configuration and merge it with defaults and CLI overrides."""

    def __init__(self) -> None:
        """Initialize ConfigLoader with built-in defaults."""
        self.BUILT_IN_DEFAULTS: dict[str, Any] = {
            "provider": DEFAULT_PROVIDER,
            "token": None,
            "key": None,
            "key_location": DEFAULT_KEY_LOCATION,
            "count": DEFAULT_INSTANCE_COUNT,
            "name": DEFAULT_NAME_PREFIX,
            "regions": ALL_REGIONS,
            "force": False,
            "start_tcp": DEFAULT_START_PORT,
            "ssh_username": None,
            "wait": PROVISION_WAIT_SECONDS,
            "size": None,
            "image": None,
        }

    def load_config(self, config_path: str | None = None) -> dict[str, Any]:
        """Load configuration from YAML file.

        Parameters
        ----------
        config_path : str | None
            Path to YAML config file. If None, checks CLOUDPROXY_CONFIG env var,
            then falls back to cloudproxy.yaml

        Returns
        -------
        dict[str, Any]
            Parsed configuration with a ``defaults`` section, variable
            interpolations resolved

        Raises
        ------
        ConfigError
            If the file is not valid YAML or references undefined variables
        """
        if config_path is None:
            config_path = os.environ.get("CLOUDPROXY_CONFIG", "cloudproxy.yaml")

        config_file = Path(config_path)

        if not config_file.exists():
            return {"defaults": {}}

        try:
            cfg = OmegaConf.load(config_file)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML config file %s: %s", config_file, e)
            raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e
        except OSError as e:
            logger.error("Failed to read config file %s: %s", config_file, e)
            raise ConfigError(f"Failed to read config file {config_file}: {e}") from e

        if cfg is None:
            return {"defaults": {}}

        if "vars" in cfg:
            vars_dict = OmegaConf.to_container(cfg.vars, resolve=False)
            for key, value in vars_dict.items():
                if key not in cfg:
                    cfg[key] = value

        try:
            config = OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
        except (OmegaConfBaseException, ValueError, KeyError, AttributeError) as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise ConfigError(f"Configuration variable resolution error: {e}") from e

        if not isinstance(config, dict):
            raise ConfigError(f"{config_file} must contain a mapping")

        config.setdefault("defaults", {})
        return config

    def merge(
        self, config: dict[str, Any], overrides: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Merge built-in defaults, YAML defaults, CLI overrides and environment.

        Parameters
        ----------
        config : dict[str, Any]
            Full configuration from YAML
        overrides : dict[str, Any] | None
            CLI values; None values are ignored

        Returns
        -------
        dict[str, Any]
            Merged configuration
        """
        merged = copy.deepcopy(self.BUILT_IN_DEFAULTS)

        yaml_defaults = config.get("defaults") or {}
        for key, value in yaml_defaults.items():
            merged[key] = value

        for key, value in (overrides or {}).items():
            if value is not None:
                merged[key] = value

        provider = merged.get("provider")
        env_var = TOKEN_ENV_VARS.get(provider) if isinstance(provider, str) else None
        if not merged.get("token") and env_var:
            merged["token"] = os.environ.get(env_var) or None

        if isinstance(provider, str) and provider in list_providers():
            for key, value in get_provider_defaults(provider).items():
                if merged.get(key) is None:
                    merged[key] = value

        return merged

    def validate_config(self, config: dict[str, Any], require_key: bool = True) -> None:
        """Validate configuration has required fields and correct types.

        Parameters
        ----------
        config : dict[str, Any]
            Merged configuration to validate
        require_key : bool
            Whether an SSH key name is mandatory (default: True)

        Raises
        ------
        ConfigError
            If configuration is invalid
        """
        provider = config.get("provider")
        available_providers = list_providers()
        if provider not in available_providers:
            raise ConfigError(
                f"Unknown provider: {provider}. Available providers: {available_providers}"
            )

        self._validate_credentials(config, require_key)
        self._validate_count(config)
        self._validate_optional_fields(config)

        try:
            parse_port_parameter(config["start_tcp"])
        except ValueError as e:
            raise ConfigError(f"start_tcp: {e}") from e

        if int(config["start_tcp"]) + int(config["count"]) - 1 > MAX_VALID_PORT:
            raise ConfigError(
                f"start_tcp {config['start_tcp']} leaves no room for {config['count']} listeners"
            )

    def _validate_credentials(self, config: dict[str, Any], require_key: bool) -> None:
        if require_key and not config.get("key"):
            raise ConfigError("key is required (SSH key name or fingerprint)")

        if config["provider"] in TOKEN_ENV_VARS and not config.get("token"):
            raise ConfigError(
                f"token is required for {config['provider']} "
                f"(or set {TOKEN_ENV_VARS[config['provider']]})"
            )

    def _validate_count(self, config: dict[str, Any]) -> None:
        count = config.get("count")

        if isinstance(count, bool) or not isinstance(count, int):
            raise ConfigError("count must be an integer")

        if count < 1:
            raise ConfigError("count must be at least 1")

        if count > MAX_INSTANCES_WITHOUT_FORCE and not config.get("force"):
            raise ConfigError(
                f"count greater than {MAX_INSTANCES_WITHOUT_FORCE}, use force to override"
            )

    def _validate_optional_fields(self, config: dict[str, Any]) -> None:
        string_fields = ("key_location", "name", "regions", "ssh_username")

        for field in string_fields:
            if not isinstance(config.get(field), str) or not config[field]:
                raise ConfigError(f"{field} must be a non-empty string")

        for field in ("key", "token", "size", "image"):
            if config.get(field) is not None and not isinstance(config[field], str):
                raise ConfigError(f"{field} must be a string")

        if not isinstance(config.get("force"), bool):
            raise ConfigError("force must be a boolean")

        wait = config.get("wait")
        if isinstance(wait, bool) or not isinstance(wait, (int, float)) or wait < 0:
            raise ConfigError("wait must be a non-negative number of seconds")

    def build(
        self,
        overrides: dict[str, Any] | None = None,
        config_path: str | None = None,
        require_key: bool = True,
    ) -> ProxyConfig:
        """Load, merge and validate configuration into a ProxyConfig.

        Parameters
        ----------
        overrides : dict[str, Any] | None
            CLI values; None values are ignored
        config_path : str | None
            Explicit YAML path
        require_key : bool
            Whether an SSH key name is mandatory (default: True)

        Returns
        -------
        ProxyConfig
            Immutable run configuration

        Raises
        ------
        ConfigError
            If configuration is missing or invalid
        """
        merged = self.merge(self.load_config(config_path), overrides)

        if isinstance(merged.get("regions"), (list, tuple)):
            merged["regions"] = parse_regions_parameter(merged["regions"])

        # numeric DigitalOcean key IDs come back from YAML as int
        key = merged.get("key")
        if isinstance(key, int) and not isinstance(key, bool):
            merged["key"] = str(key)

        self.validate_config(merged, require_key)

        return ProxyConfig(
            provider=merged["provider"],
            key=merged["key"],
            token=merged.get("token"),
            key_location=merged["key_location"],
            count=merged["count"],
            name=merged["name"],
            regions=merged["regions"],
            force=merged["force"],
            start_tcp=int(merged["start_tcp"]),
            ssh_username=merged["ssh_username"],
            wait=merged["wait"],
            size=merged.get("size"),
            image=merged.get("image"),
        )
