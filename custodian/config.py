# custodian/config.py
"""
Client configuration.

Loaded from YAML:

    base_url: https://api.example.com
    organization_id: <parent organization ID>
    rp_id: example.com
    rp_name: Example Wallet
    timeout: 30
    key_id: <private key ID, optional>
    api_key:               # optional, backends only
      public_key: 02ab...
      private_key: 1f3c...
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

REQUIRED_KEYS = ("base_url", "organization_id")


@dataclass
class ApiKeyConfig:
    public_key: str
    private_key: str


@dataclass
class ClientConfig:
    """Settings shared by every component of a client."""
    base_url: str
    organization_id: str
    rp_id: str = "localhost"
    rp_name: str = "Custodian"
    timeout: float = 30
    key_id: Optional[str] = None
    api_key: Optional[ApiKeyConfig] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")

        missing = [key for key in REQUIRED_KEYS if not data.get(key)]
        if missing:
            raise ConfigError(f"Missing configuration keys: {', '.join(missing)}")

        api_key = None
        if data.get("api_key"):
            try:
                api_key = ApiKeyConfig(
                    public_key=data["api_key"]["public_key"],
                    private_key=data["api_key"]["private_key"],
                )
            except (KeyError, TypeError) as e:
                raise ConfigError(f"api_key is missing {e}", cause=e) from e

        return cls(
            base_url=data["base_url"],
            organization_id=data["organization_id"],
            rp_id=data.get("rp_id", "localhost"),
            rp_name=data.get("rp_name", "Custodian"),
            timeout=float(data.get("timeout", 30)),
            key_id=data.get("key_id"),
            api_key=api_key,
        )

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "ClientConfig":
        """Parse configuration from a YAML string."""
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}", cause=e) from e
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Path) -> "ClientConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r") as f:
                return cls.from_yaml(f.read())
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}", cause=e) from e
