"""DigitalOcean Spaces object storage provider.

Spaces buckets are addressed as ``{bucket}.{region}.digitaloceanspaces.com``.
Bucket creation through the virtual-hosted endpoint expects the credential
scope to name ``us-east-1`` whatever region the Space lives in, so Spaces
signs every request with that literal unless configured otherwise.
"""

from foundrykit.storage.provider import ObjectStorageProvider, StorageRegion

SPACES_SIGNING_REGION = "us-east-1"


class DigitalOceanSpaces(ObjectStorageProvider):
    """DigitalOcean Spaces."""

    id = "digitalocean"
    display_name = "DigitalOcean Spaces"
    endpoint_template = "{region}.digitaloceanspaces.com"
    default_signing_region_override = SPACES_SIGNING_REGION
    REGIONS = (
        StorageRegion("nyc3", "New York 3", "nyc3.digitaloceanspaces.com"),
        StorageRegion("sfo3", "San Francisco 3", "sfo3.digitaloceanspaces.com"),
        StorageRegion("ams3", "Amsterdam 3", "ams3.digitaloceanspaces.com"),
        StorageRegion("sgp1", "Singapore 1", "sgp1.digitaloceanspaces.com"),
        StorageRegion("fra1", "Frankfurt 1", "fra1.digitaloceanspaces.com"),
        StorageRegion("syd1", "Sydney 1", "syd1.digitaloceanspaces.com"),
    )
