"""Input validation helpers for foundrykit.

These run before any network call so that a malformed request never reaches
a storage provider. Each function raises ``InvalidRequest`` on invalid input.
"""

import re
import urllib.parse

from foundrykit.errors import InvalidRequest
from foundrykit.sigv4 import Credentials

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# S3 bucket naming rules:
#   - 3-63 characters
#   - lowercase letters, digits, hyphens, and periods
#   - must start and end with a letter or digit
#   - must not be formatted as an IP address
#   - must not start with "xn--" (internationalized domain prefix)
#   - must not end with "-s3alias" or "--ol-s3"
#   - no consecutive periods ("..") allowed

_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")
_IP_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_bucket_name(name: str) -> None:
    """Validate a bucket name against S3 naming rules.

    Args:
        name: The candidate bucket name.

    Raises:
        InvalidRequest: If the name violates any S3 bucket naming rule.
    """
    if not name:
        raise InvalidRequest("A bucket name is required.")

    if len(name) < 3 or len(name) > 63:
        raise InvalidRequest(f"Bucket name must be 3-63 characters: {name}")

    if not _BUCKET_RE.match(name):
        raise InvalidRequest(
            f"Bucket name may only contain lowercase letters, digits, '-' and '.': {name}"
        )

    if _IP_RE.match(name):
        raise InvalidRequest(f"Bucket name must not be an IP address: {name}")

    if name.startswith("xn--"):
        raise InvalidRequest(f"Bucket name must not start with 'xn--': {name}")

    if name.endswith("-s3alias") or name.endswith("--ol-s3"):
        raise InvalidRequest(f"Bucket name uses a reserved suffix: {name}")

    if ".." in name:
        raise InvalidRequest(f"Bucket name must not contain '..': {name}")


def validate_credentials_fields(credentials: Credentials) -> None:
    """Check that both halves of an access key pair are present.

    Raises:
        InvalidRequest: If either field is empty.
    """
    if not credentials.access_key_id or not credentials.access_key_id.strip():
        raise InvalidRequest("Missing access key id.")
    if not credentials.secret_access_key:
        raise InvalidRequest("Missing secret access key.")


def validate_region(region: str, known_regions: list[str]) -> None:
    """Check that a region is one the provider serves.

    Args:
        region: The region slug.
        known_regions: The provider's region slugs.

    Raises:
        InvalidRequest: If the region is empty or unknown.
    """
    if not region:
        raise InvalidRequest("A region is required.")
    if region not in known_regions:
        raise InvalidRequest(
            f"Unknown region '{region}'. Expected one of: {', '.join(known_regions)}"
        )


def validate_origin(origin: str) -> None:
    """Check that a CORS origin is an http(s) scheme plus host.

    Args:
        origin: The origin string (e.g. "https://vtt.example.com").

    Raises:
        InvalidRequest: If the origin is missing or not an http(s) origin.
    """
    if not origin:
        raise InvalidRequest("An allowed origin is required.")
    if origin == "*":
        return
    parsed = urllib.parse.urlsplit(origin)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidRequest(f"Allowed origin must be an http(s) origin: {origin}")
    if parsed.path not in ("", "/") or parsed.query or parsed.fragment:
        raise InvalidRequest(f"Allowed origin must not carry a path or query: {origin}")
