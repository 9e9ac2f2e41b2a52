"""Configuration loading and Pydantic models for foundrykit."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

DEFAULT_ALLOWED_ORIGINS = ["http://localhost:5173", "http://localhost:4173"]


class ServerConfig(BaseModel):
    """Relay binding, origin allowlist and logging configuration."""

    host: str = "127.0.0.1"
    port: int = 8787
    allowed_origins: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    log_level: str = "INFO"
    log_format: str = "text"
    shutdown_timeout: int = 10


class ProviderConfig(BaseModel):
    """Per-provider overrides.

    ``signing_region_override`` replaces the provider's default: a region
    literal forces that region into the credential scope, an empty string
    signs with the bucket's own region, and None keeps the default.
    """

    signing_region_override: str | None = None
    timeout_seconds: float | None = None


class StorageConfig(BaseModel):
    """Object storage client configuration."""

    timeout_seconds: float = 5.0
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)

    def provider(self, provider_id: str) -> ProviderConfig:
        """Return the overrides for a provider (defaults when unset)."""
        return self.providers.get(provider_id, ProviderConfig())


class SshConfig(BaseModel):
    """SSH key generation configuration."""

    key_size: int = 4096
    comment: str = "foundry-installer"
    output_dir: str = "."
    private_key_filename: str = "foundry-installer.pem"


class ObservabilityConfig(BaseModel):
    """Metrics and health check configuration."""

    metrics: bool = True
    health_check: bool = True


class FoundryKitConfig(BaseModel):
    """Top-level foundrykit configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    ssh: SshConfig = Field(default_factory=SshConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_server(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the server section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    result: dict[str, Any] = {
        "host": data.get("host", "127.0.0.1"),
        "port": data.get("port", 8787),
        "log_level": data.get("log_level", "INFO"),
        "log_format": data.get("log_format", "text"),
        "shutdown_timeout": data.get("shutdown_timeout", 10),
    }
    if "allowed_origins" in data:
        result["allowed_origins"] = data["allowed_origins"] or []
    return result


def _parse_storage(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the storage section from YAML data.

    Handles nested structure: storage.providers.<id>.signing_region_override
    """
    if data is None:
        return {}

    result: dict[str, Any] = {"timeout_seconds": data.get("timeout_seconds", 5.0)}

    providers_section = data.get("providers")
    if isinstance(providers_section, dict):
        providers: dict[str, ProviderConfig] = {}
        for provider_id, section in providers_section.items():
            if not isinstance(section, dict):
                continue
            providers[str(provider_id)] = ProviderConfig(
                signing_region_override=section.get("signing_region_override"),
                timeout_seconds=section.get("timeout_seconds"),
            )
        result["providers"] = providers

    return result


def _parse_ssh(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the ssh section from YAML data."""
    if data is None:
        return {}
    return {
        "key_size": data.get("key_size", 4096),
        "comment": data.get("comment", "foundry-installer"),
        "output_dir": data.get("output_dir", "."),
        "private_key_filename": data.get("private_key_filename", "foundry-installer.pem"),
    }


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {
        "metrics": data.get("metrics", True),
        "health_check": data.get("health_check", True),
    }


def load_config(path: Path) -> FoundryKitConfig:
    """Load a FoundryKitConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated FoundryKitConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return FoundryKitConfig(
        server=ServerConfig(**_parse_server(raw.get("server"))),
        storage=StorageConfig(**_parse_storage(raw.get("storage"))),
        ssh=SshConfig(**_parse_ssh(raw.get("ssh"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )
