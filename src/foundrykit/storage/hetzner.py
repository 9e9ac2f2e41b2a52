"""Hetzner Object Storage provider.

Buckets are addressed as ``{bucket}.{region}.your-objectstorage.com`` and
signed with the bucket's own region.
"""

from foundrykit.storage.provider import ObjectStorageProvider, StorageRegion


class HetznerObjectStorage(ObjectStorageProvider):
    """Hetzner Object Storage."""

    id = "hetzner"
    display_name = "Hetzner Object Storage"
    endpoint_template = "{region}.your-objectstorage.com"
    REGIONS = (
        StorageRegion("fsn1", "Falkenstein (fsn1)", "fsn1.your-objectstorage.com"),
        StorageRegion("nbg1", "Nuremberg (nbg1)", "nbg1.your-objectstorage.com"),
        StorageRegion("hel1", "Helsinki (hel1)", "hel1.your-objectstorage.com"),
    )
