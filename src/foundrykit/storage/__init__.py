"""S3-compatible object storage providers for foundrykit."""

from typing import TYPE_CHECKING

import httpx

from foundrykit.errors import InvalidRequest
from foundrykit.storage.digitalocean import DigitalOceanSpaces
from foundrykit.storage.hetzner import HetznerObjectStorage
from foundrykit.storage.provider import (
    CredentialStatus,
    ObjectStorageProvider,
    StorageRegion,
)

if TYPE_CHECKING:
    from foundrykit.config import StorageConfig

__all__ = [
    "create_storage_provider",
    "CredentialStatus",
    "DigitalOceanSpaces",
    "get_storage_provider",
    "HetznerObjectStorage",
    "ObjectStorageProvider",
    "PROVIDERS",
    "StorageRegion",
]

PROVIDERS: dict[str, type[ObjectStorageProvider]] = {
    DigitalOceanSpaces.id: DigitalOceanSpaces,
    HetznerObjectStorage.id: HetznerObjectStorage,
}


def get_storage_provider(provider_id: str, **kwargs) -> ObjectStorageProvider:
    """Instantiate a storage provider by id.

    Args:
        provider_id: "digitalocean" or "hetzner".
        **kwargs: Passed to the provider constructor.

    Returns:
        The provider instance.

    Raises:
        InvalidRequest: If the id is unknown.
    """
    provider_cls = PROVIDERS.get(provider_id)
    if provider_cls is None:
        raise InvalidRequest(
            f"Unknown storage provider: {provider_id}. "
            f"Expected one of: {', '.join(sorted(PROVIDERS))}"
        )
    return provider_cls(**kwargs)


def create_storage_provider(
    provider_id: str,
    config: "StorageConfig",
    client: httpx.AsyncClient | None = None,
) -> ObjectStorageProvider:
    """Create a storage provider with the configured overrides applied.

    Args:
        provider_id: The provider id.
        config: The storage configuration.
        client: Optional shared HTTP client.

    Returns:
        The configured provider instance.
    """
    overrides = config.provider(provider_id)
    timeout = overrides.timeout_seconds
    if timeout is None:
        timeout = config.timeout_seconds
    return get_storage_provider(
        provider_id,
        client=client,
        timeout=timeout,
        signing_region_override=overrides.signing_region_override,
    )
