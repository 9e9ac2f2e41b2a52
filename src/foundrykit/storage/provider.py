"""Base class for S3-compatible object storage providers.

Every provider speaks the same three bucket operations over virtual-hosted
URLs (``https://{bucket}.{endpoint}/``), each one a single SigV4-signed
HTTP call:

    Validate     GET /         empty body
    CreateBucket PUT /         empty body
    PutBucketCors PUT /?cors   CORS XML body, content-type signed

Providers differ in their regions, their endpoint host, and whether the
credential scope must carry a fixed signing region.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import httpx

from foundrykit import metrics
from foundrykit.errors import NameConflict, ProviderError, TransportError
from foundrykit.sigv4 import CORS_QUERY, XML_CONTENT_TYPE, Credentials, SigV4Signer
from foundrykit.validation import (
    validate_bucket_name,
    validate_credentials_fields,
    validate_origin,
    validate_region,
)
from foundrykit.xml_utils import parse_error_response, render_cors_configuration

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

# Provider error codes that matter to bucket creation.
BUCKET_OWNED_BY_YOU = "BucketAlreadyOwnedByYou"
BUCKET_ALREADY_EXISTS = "BucketAlreadyExists"

# 403 codes that mean the signature itself was refused.
_SIGNATURE_FAILURE_CODES = ("SignatureDoesNotMatch", "InvalidAccessKeyId")


class CredentialStatus(str, Enum):
    """Outcome of a credential check against a bucket."""

    AUTHORIZED = "authorized"
    FORBIDDEN = "forbidden"
    REJECTED = "rejected"


@dataclass(frozen=True)
class StorageRegion:
    """A region an object storage provider serves.

    Attributes:
        slug: The region identifier (e.g. "nyc3").
        name: Display name.
        endpoint: The regional S3 endpoint host.
    """

    slug: str
    name: str
    endpoint: str


class ObjectStorageProvider:
    """An S3-compatible object storage provider.

    Subclasses set ``id``, ``display_name``, ``REGIONS`` and
    ``endpoint_template`` and may set ``default_signing_region_override``.

    An ``httpx.AsyncClient`` may be injected; it is used as-is and left open.
    Without one, each operation opens and closes its own client.

    Attributes:
        timeout: Per-request timeout in seconds.
        signing_region_override: Region literal for the credential scope, or
            None/empty to sign with the bucket's region.
    """

    id: str = ""
    display_name: str = ""
    REGIONS: tuple[StorageRegion, ...] = ()
    endpoint_template: str = ""
    default_signing_region_override: str | None = None

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        signing_region_override: str | None = None,
        scheme: str = "https",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self.timeout = timeout
        if signing_region_override is None:
            signing_region_override = self.default_signing_region_override
        self.signing_region_override = signing_region_override or None
        self.scheme = scheme
        self._clock = clock

    # -- Regions and hosts -----------------------------------------------------

    def regions(self) -> list[StorageRegion]:
        """Return the regions this provider serves."""
        return list(self.REGIONS)

    def region_slugs(self) -> list[str]:
        return [r.slug for r in self.REGIONS]

    def endpoint(self, region: str) -> str:
        """Return the regional endpoint host (no scheme)."""
        return self.endpoint_template.format(region=region)

    def bucket_host(self, bucket: str, region: str) -> str:
        """Return the virtual-hosted bucket host."""
        return f"{bucket}.{self.endpoint(region)}"

    def signer(self, region: str) -> SigV4Signer:
        """Return a signer for a region, honoring the provider's override."""
        return SigV4Signer(
            region,
            signing_region_override=self.signing_region_override,
            clock=self._clock,
        )

    # -- Operations ------------------------------------------------------------

    async def check_credentials(
        self, credentials: Credentials, region: str, bucket: str
    ) -> CredentialStatus:
        """Probe a bucket with a signed GET and classify the answer.

        2xx means the key may read the bucket. 403 means the signature was
        accepted but the key lacks permission, unless the provider's error
        code says the signature or key id was refused.

        Args:
            credentials: The access key pair.
            region: The bucket's region.
            bucket: The bucket name.

        Returns:
            The credential status.

        Raises:
            InvalidRequest: On malformed input.
            TransportError: If the endpoint is unreachable.
        """
        self._check_target(credentials, region, bucket)
        response = await self._send(credentials, region, bucket, "GET")

        if response.is_success:
            status = CredentialStatus.AUTHORIZED
        elif response.status_code == 403:
            parsed = parse_error_response(response.text)
            if parsed is not None and parsed.code in _SIGNATURE_FAILURE_CODES:
                status = CredentialStatus.REJECTED
            else:
                status = CredentialStatus.FORBIDDEN
        else:
            status = CredentialStatus.REJECTED

        logger.info(
            "Credential check on %s bucket %s (%s): HTTP %d -> %s",
            self.id,
            bucket,
            region,
            response.status_code,
            status.value,
            extra={"provider": self.id, "operation": "validate"},
        )
        metrics.record_storage_operation(self.id, "validate", status.value)
        return status

    async def validate_credentials(
        self, credentials: Credentials, region: str, bucket: str
    ) -> bool:
        """Return True if the key pair reaches the service with a valid signature.

        Both AUTHORIZED and FORBIDDEN count as valid. A refused signature or
        an unreachable endpoint counts as invalid.

        Raises:
            InvalidRequest: On malformed input.
        """
        try:
            status = await self.check_credentials(credentials, region, bucket)
        except TransportError as exc:
            logger.warning("Credential check on %s failed: %s", self.id, exc.message)
            metrics.record_storage_operation(self.id, "validate", "transport_error")
            return False
        return status is not CredentialStatus.REJECTED

    async def create_bucket(self, credentials: Credentials, region: str, bucket: str) -> None:
        """Create a bucket with a signed empty-body PUT.

        Creating a bucket the caller already owns succeeds.

        Args:
            credentials: The access key pair.
            region: The bucket's region.
            bucket: The bucket name.

        Raises:
            InvalidRequest: On malformed input.
            NameConflict: If another account owns the name.
            ProviderError: On any other non-2xx answer.
            TransportError: If the endpoint is unreachable.
        """
        self._check_target(credentials, region, bucket)
        logger.info(
            "Creating %s bucket %s in %s",
            self.id,
            bucket,
            region,
            extra={"provider": self.id, "operation": "create_bucket"},
        )
        response = await self._send(credentials, region, bucket, "PUT")

        if response.is_success:
            metrics.record_storage_operation(self.id, "create_bucket", "created")
            return

        text = response.text
        if BUCKET_OWNED_BY_YOU in text:
            logger.info("Bucket %s already exists and is owned by the caller", bucket)
            metrics.record_storage_operation(self.id, "create_bucket", "already_owned")
            return
        if BUCKET_ALREADY_EXISTS in text:
            metrics.record_storage_operation(self.id, "create_bucket", "conflict")
            raise NameConflict(bucket=bucket)

        metrics.record_storage_operation(self.id, "create_bucket", "error")
        raise _provider_error("create bucket", response)

    async def set_cors(
        self, credentials: Credentials, region: str, bucket: str, allowed_origin: str
    ) -> None:
        """Apply a CORS rule allowing ``allowed_origin`` to read the bucket.

        Raises:
            InvalidRequest: On malformed input.
            ProviderError: On a non-2xx answer.
            TransportError: If the endpoint is unreachable.
        """
        self._check_target(credentials, region, bucket)
        validate_origin(allowed_origin)
        logger.info(
            "Setting CORS on %s bucket %s for origin %s",
            self.id,
            bucket,
            allowed_origin,
            extra={"provider": self.id, "operation": "set_cors"},
        )

        body = render_cors_configuration(allowed_origin)
        response = await self._send(
            credentials,
            region,
            bucket,
            "PUT",
            payload=body.encode("utf-8"),
            query=CORS_QUERY,
            content_type=XML_CONTENT_TYPE,
        )

        if not response.is_success:
            metrics.record_storage_operation(self.id, "set_cors", "error")
            raise _provider_error("set CORS", response)
        metrics.record_storage_operation(self.id, "set_cors", "ok")

    # -- Internals -------------------------------------------------------------

    def _check_target(self, credentials: Credentials, region: str, bucket: str) -> None:
        validate_credentials_fields(credentials)
        validate_region(region, self.region_slugs())
        validate_bucket_name(bucket)

    async def _send(
        self,
        credentials: Credentials,
        region: str,
        bucket: str,
        method: str,
        payload: bytes = b"",
        query: str = "",
        content_type: str | None = None,
    ) -> httpx.Response:
        """Sign and send one request to the bucket host.

        Raises:
            TransportError: On connection failure or timeout.
        """
        host = self.bucket_host(bucket, region)
        headers = self.signer(region).request_headers(
            credentials,
            method,
            host,
            payload=payload,
            query=query,
            content_type=content_type,
        )
        # The canonical query "cors=" goes on the wire as "?cors".
        url = f"{self.scheme}://{host}/"
        if query:
            url += "?" + query.rstrip("=")

        try:
            if self._client is not None:
                return await self._client.request(
                    method, url, headers=headers, content=payload, timeout=self.timeout
                )
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, headers=headers, content=payload)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Timed out after {self.timeout:g}s contacting {host}"
            ) from exc
        except httpx.TransportError as exc:
            raise TransportError(f"Could not reach {host}: {exc}") from exc


def _provider_error(operation: str, response: httpx.Response) -> ProviderError:
    """Build a ProviderError from a failed response.

    Uses the provider's own message when the body parses, otherwise the
    status code and raw body.
    """
    text = response.text
    parsed = parse_error_response(text)
    if parsed is not None and parsed.message:
        message = f"Failed to {operation}: {parsed.message}"
        code = parsed.code
    else:
        message = f"Failed to {operation}: {response.status_code} - {text}"
        code = parsed.code if parsed is not None else ""
    return ProviderError(message, status=response.status_code, provider_code=code)
