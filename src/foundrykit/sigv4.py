"""AWS Signature Version 4 request signing for foundrykit.

Computes the Authorization header for requests to S3-compatible object
storage using virtual-hosted-style addressing (``bucket.host``). Only the
request shapes the bucket operations need are accepted: GET or PUT against
``/`` (or another already-canonical path), with an empty query string or
exactly ``cors=``.

References:
    - https://docs.aws.amazon.com/AmazonS3/latest/API/sig-v4-authenticating-requests.html
    - https://docs.aws.amazon.com/AmazonS3/latest/API/sig-v4-header-based-auth.html
"""

import hashlib
import hmac
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from foundrykit.errors import InvalidRequest

logger = logging.getLogger(__name__)

# Constants
ALGORITHM = "AWS4-HMAC-SHA256"
KEY_PREFIX = "AWS4"
SCOPE_TERMINATOR = "aws4_request"
SERVICE_NAME = "s3"
EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
CORS_QUERY = "cors="
XML_CONTENT_TYPE = "application/xml"

SUPPORTED_METHODS = ("GET", "PUT")
ALLOWED_QUERY_STRINGS = ("", CORS_QUERY)

AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
AMZ_DATE_RE = re.compile(r"^\d{8}T\d{6}Z$")


@dataclass
class Credentials:
    """An S3 access key pair.

    Attributes:
        access_key_id: The public access key id.
        secret_access_key: The secret key. Excluded from repr.
    """

    access_key_id: str
    secret_access_key: str = field(repr=False)

    @property
    def masked_key_id(self) -> str:
        """The access key id truncated for log lines."""
        return self.access_key_id[:8] + "..."


@dataclass(frozen=True)
class Scope:
    """A SigV4 credential scope.

    Attributes:
        date_stamp: Date string (YYYYMMDD).
        region: The signing region.
        service: The service name, always ``s3`` here.
    """

    date_stamp: str
    region: str
    service: str = SERVICE_NAME

    def __str__(self) -> str:
        return f"{self.date_stamp}/{self.region}/{self.service}/{SCOPE_TERMINATOR}"


@dataclass
class SignableRequest:
    """The parts of an outbound request that take part in the signature.

    ``host`` is always signed. ``extra_headers`` must carry ``x-amz-date``
    and ``x-amz-content-sha256`` and, for a PUT with a body, ``content-type``.

    Attributes:
        method: HTTP method, GET or PUT.
        host: The virtual-hosted bucket host (``bucket.endpoint``).
        canonical_uri: The canonical path, ``/`` for bucket operations.
        canonical_querystring: Empty or exactly ``cors=``.
        extra_headers: Other signed headers, in any order. A ``host`` entry
            must match ``host``.
        payload: The request body.
    """

    method: str
    host: str
    canonical_uri: str = "/"
    canonical_querystring: str = ""
    extra_headers: dict[str, str] = field(default_factory=dict)
    payload: bytes = b""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def amz_timestamp(now: datetime) -> str:
    """Format a datetime as a compact ISO 8601 UTC timestamp (YYYYMMDDTHHMMSSZ).

    Naive datetimes are taken to be UTC already.
    """
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime(AMZ_DATE_FORMAT)


def hash_payload(payload: bytes | str) -> str:
    """Return the lowercase hex SHA-256 of a request body."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def build_request(
    method: str,
    host: str,
    payload: bytes | str = b"",
    query: str = "",
    content_type: str | None = None,
    now: datetime | None = None,
) -> SignableRequest:
    """Build a SignableRequest with the required x-amz headers filled in.

    Args:
        method: HTTP method.
        host: The bucket host.
        payload: The request body.
        query: Canonical query string.
        content_type: Content-Type to sign, if the request carries a body.
        now: Signing time. Defaults to the current UTC time.

    Returns:
        A request ready for SigV4Signer.sign().
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if now is None:
        now = _utc_now()

    headers: dict[str, str] = {}
    if content_type is not None:
        headers["content-type"] = content_type
    headers["x-amz-content-sha256"] = hash_payload(payload)
    headers["x-amz-date"] = amz_timestamp(now)

    return SignableRequest(
        method=method,
        host=host,
        canonical_uri="/",
        canonical_querystring=query,
        extra_headers=headers,
        payload=payload,
    )


class SigV4Signer:
    """Signs S3 requests with AWS Signature Version 4.

    A signer is bound to one region. Providers whose endpoints expect a fixed
    region literal in the credential scope pass ``signing_region_override``;
    the override then replaces the endpoint region in the scope and in the
    key derivation, and nowhere else.

    Attributes:
        region: The bucket's region.
        signing_region_override: Region literal used in the scope instead of
            ``region``, or None.
        service: The service name in the scope.
    """

    def __init__(
        self,
        region: str,
        signing_region_override: str | None = None,
        service: str = SERVICE_NAME,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the signer.

        Args:
            region: The bucket's region.
            signing_region_override: Optional fixed signing region.
            service: Service name (default ``s3``).
            clock: Callable returning the current UTC time. Tests freeze it.
        """
        if not region and not signing_region_override:
            raise InvalidRequest("A region is required for signing.")
        self.region = region
        self.signing_region_override = signing_region_override
        self.service = service
        self._clock = clock or _utc_now

    @property
    def signing_region(self) -> str:
        """The region literal that goes into the credential scope."""
        return self.signing_region_override or self.region

    def now(self) -> datetime:
        """Return the current time from the signer's clock."""
        return self._clock()

    # -- Scope -----------------------------------------------------------------

    def scope_for(self, amz_date: str) -> Scope:
        """Build the credential scope for a request timestamp.

        Args:
            amz_date: The x-amz-date value (YYYYMMDDTHHMMSSZ).

        Returns:
            The Scope for the timestamp's date and the signing region.
        """
        return Scope(date_stamp=amz_date[:8], region=self.signing_region, service=self.service)

    # -- Canonical request construction ----------------------------------------

    def canonical_headers(self, request: SignableRequest) -> list[tuple[str, str]]:
        """Return the signed headers as sorted (lowercase name, value) pairs.

        A ``host`` entry in ``extra_headers`` is folded into the single host
        line when it names ``request.host``.

        Raises:
            InvalidRequest: If a header name repeats once lowercased, or a
                host header disagrees with ``request.host``.
        """
        host = _trim_header_value(request.host)
        lower_headers: dict[str, str] = {}
        for name, value in request.extra_headers.items():
            lower_name = name.strip().lower()
            if lower_name in lower_headers:
                raise InvalidRequest(f"Duplicate signed header: {lower_name}")
            lower_headers[lower_name] = _trim_header_value(value)
        if lower_headers.setdefault("host", host) != host:
            raise InvalidRequest(
                f"Host header does not match request host: {lower_headers['host']}"
            )
        return sorted(lower_headers.items())

    def canonical_request(self, request: SignableRequest) -> str:
        """Build the canonical request string.

        Args:
            request: The request to canonicalize.

        Returns:
            The newline-joined canonical request.

        Raises:
            InvalidRequest: If the request violates a signing invariant.
        """
        _check_request(request)
        headers = self.canonical_headers(request)
        canonical_headers = "".join(f"{name}:{value}\n" for name, value in headers)
        signed_headers = ";".join(name for name, _ in headers)
        payload_hash = dict(headers)["x-amz-content-sha256"]

        parts = [
            request.method,
            request.canonical_uri,
            request.canonical_querystring,
            canonical_headers,
            signed_headers,
            payload_hash,
        ]
        return "\n".join(parts)

    # -- String to sign --------------------------------------------------------

    def string_to_sign(self, amz_date: str, scope: Scope, canonical_request: str) -> str:
        """Build the string to sign.

        Args:
            amz_date: ISO 8601 timestamp (YYYYMMDDTHHMMSSZ).
            scope: The credential scope.
            canonical_request: The assembled canonical request string.

        Returns:
            The string to sign.
        """
        canonical_hash = hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()
        return f"{ALGORITHM}\n{amz_date}\n{scope}\n{canonical_hash}"

    # -- Signing ---------------------------------------------------------------

    def sign(self, request: SignableRequest, credentials: Credentials) -> str:
        """Compute the Authorization header value for a request.

        Args:
            request: A request carrying its x-amz headers.
            credentials: The access key pair.

        Returns:
            ``AWS4-HMAC-SHA256 Credential=..., SignedHeaders=..., Signature=...``

        Raises:
            InvalidRequest: If the request or credentials are malformed.
        """
        _check_credentials(credentials)
        _check_request(request)

        headers = self.canonical_headers(request)
        signed_headers = ";".join(name for name, _ in headers)
        amz_date = dict(headers)["x-amz-date"]
        scope = self.scope_for(amz_date)

        canonical_request = self.canonical_request(request)
        string_to_sign = self.string_to_sign(amz_date, scope, canonical_request)
        signing_key = derive_signing_key(
            credentials.secret_access_key, scope.date_stamp, scope.region, scope.service
        )
        signature = _compute_signature(signing_key, string_to_sign)

        logger.debug(
            "Signed %s %s%s key=%s scope=%s",
            request.method,
            request.host,
            request.canonical_uri,
            credentials.masked_key_id,
            scope,
        )
        return (
            f"{ALGORITHM} Credential={credentials.access_key_id}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )

    def request_headers(
        self,
        credentials: Credentials,
        method: str,
        host: str,
        payload: bytes | str = b"",
        query: str = "",
        content_type: str | None = None,
    ) -> dict[str, str]:
        """Build and sign a request for the signer's current time.

        Returns:
            The full outgoing header map, including ``Authorization``.
        """
        request = build_request(
            method,
            host,
            payload=payload,
            query=query,
            content_type=content_type,
            now=self.now(),
        )
        authorization = self.sign(request, credentials)
        headers = {"Host": request.host}
        headers.update(
            (name, value)
            for name, value in request.extra_headers.items()
            if name.strip().lower() != "host"
        )
        headers["Authorization"] = authorization
        return headers


# ---------------------------------------------------------------------------
# Module-level utility functions
# ---------------------------------------------------------------------------


def sign(
    request: SignableRequest,
    credentials: Credentials,
    region: str,
    signing_region_override: str | None = None,
) -> str:
    """Sign a request without keeping a SigV4Signer around.

    Args:
        request: A request carrying its x-amz headers.
        credentials: The access key pair.
        region: The bucket's region.
        signing_region_override: Optional fixed signing region.

    Returns:
        The Authorization header value.
    """
    return SigV4Signer(region, signing_region_override=signing_region_override).sign(
        request, credentials
    )


def derive_signing_key(secret_key: str, date: str, region: str, service: str) -> bytes:
    """Derive the SigV4 signing key via the HMAC-SHA256 chain.

    Args:
        secret_key: The secret access key.
        date: Date string (YYYYMMDD).
        region: Signing region.
        service: Service name.

    Returns:
        The 32-byte signing key.
    """
    k_date = hmac.new(
        (KEY_PREFIX + secret_key).encode("utf-8"),
        date.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    k_region = hmac.new(k_date, region.encode("utf-8"), hashlib.sha256).digest()
    k_service = hmac.new(k_region, service.encode("utf-8"), hashlib.sha256).digest()
    k_signing = hmac.new(k_service, SCOPE_TERMINATOR.encode("utf-8"), hashlib.sha256).digest()
    return k_signing


def _compute_signature(signing_key: bytes, string_to_sign: str) -> str:
    """Compute the final HMAC-SHA256 hex signature (64 lowercase hex chars)."""
    return hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()


def _trim_header_value(value: str) -> str:
    """Strip surrounding whitespace and collapse sequential spaces."""
    value = value.strip()
    return re.sub(r" +", " ", value)


def _check_credentials(credentials: Credentials) -> None:
    if not credentials.access_key_id:
        raise InvalidRequest("Missing access key id.")
    if not credentials.secret_access_key:
        raise InvalidRequest("Missing secret access key.")


def _check_request(request: SignableRequest) -> None:
    """Reject requests the signer does not support.

    Raises:
        InvalidRequest: On any violated request invariant.
    """
    if request.method not in SUPPORTED_METHODS:
        raise InvalidRequest(f"Unsupported method: {request.method}")
    if not request.host or any(c.isspace() for c in request.host):
        raise InvalidRequest("A host is required.")
    if not request.canonical_uri.startswith("/"):
        raise InvalidRequest(f"Canonical URI must start with '/': {request.canonical_uri}")
    if request.canonical_querystring not in ALLOWED_QUERY_STRINGS:
        raise InvalidRequest(f"Unsupported query string: {request.canonical_querystring}")

    lower = {name.strip().lower(): value for name, value in request.extra_headers.items()}

    amz_date = lower.get("x-amz-date")
    if amz_date is None:
        raise InvalidRequest("Missing x-amz-date header.")
    if not AMZ_DATE_RE.match(amz_date):
        raise InvalidRequest(f"Invalid x-amz-date: {amz_date}")

    content_sha = lower.get("x-amz-content-sha256")
    if content_sha is None:
        raise InvalidRequest("Missing x-amz-content-sha256 header.")
    if content_sha != hash_payload(request.payload):
        raise InvalidRequest("x-amz-content-sha256 does not match the payload.")

    if request.method == "PUT" and request.payload and not lower.get("content-type"):
        raise InvalidRequest("A PUT with a body must sign content-type.")
