"""S3 XML helpers for foundrykit: CORS bodies out, error bodies in."""

import json
from dataclasses import dataclass
from xml.etree import ElementTree
from xml.sax.saxutils import escape as _sax_escape

S3_NAMESPACE = "{http://s3.amazonaws.com/doc/2006-03-01/}"

CORS_ALLOWED_METHODS = ("GET", "HEAD")
CORS_MAX_AGE_SECONDS = 3600


@dataclass(frozen=True)
class ProviderErrorBody:
    """An error parsed from a provider response body.

    Attributes:
        code: The provider error code (e.g. "BucketAlreadyExists"), may be empty.
        message: The provider's human-readable message, may be empty.
    """

    code: str = ""
    message: str = ""


def _escape_xml(value: str) -> str:
    """Escape special XML characters in a string value.

    Args:
        value: The raw string to escape.

    Returns:
        The XML-safe escaped string.
    """
    return _sax_escape(str(value))


def render_cors_configuration(
    allowed_origin: str,
    allowed_methods: tuple[str, ...] = CORS_ALLOWED_METHODS,
    max_age_seconds: int = CORS_MAX_AGE_SECONDS,
) -> str:
    """Render a PutBucketCors request body with a single rule.

    The rule allows the given origin to read objects with any request header.

    Args:
        allowed_origin: The origin to allow (e.g. "https://vtt.example.com").
        allowed_methods: HTTP methods the origin may use.
        max_age_seconds: Preflight cache lifetime.

    Returns:
        The CORSConfiguration XML document.
    """
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        "<CORSConfiguration>",
        "  <CORSRule>",
        f"    <AllowedOrigin>{_escape_xml(allowed_origin)}</AllowedOrigin>",
    ]
    for method in allowed_methods:
        parts.append(f"    <AllowedMethod>{_escape_xml(method)}</AllowedMethod>")
    parts.append("    <AllowedHeader>*</AllowedHeader>")
    parts.append(f"    <MaxAgeSeconds>{int(max_age_seconds)}</MaxAgeSeconds>")
    parts.append("  </CORSRule>")
    parts.append("</CORSConfiguration>")
    return "\n".join(parts)


def _find_text(parent: ElementTree.Element, name: str) -> str:
    """Return the stripped text of a child element, namespaced or bare."""
    elem = parent.find(f"{S3_NAMESPACE}{name}")
    if elem is None:
        elem = parent.find(name)
    if elem is not None and elem.text:
        return elem.text.strip()
    return ""


def parse_error_response(body: str) -> ProviderErrorBody | None:
    """Parse a provider error body.

    S3 endpoints answer with an ``<Error><Code/><Message/></Error>`` document;
    JSON relays answer with ``{"error": "..."}``. Anything else is not an
    error body.

    Args:
        body: The raw response text.

    Returns:
        The parsed error, or None if the body has neither shape.
    """
    text = body.strip()
    if not text:
        return None

    if text.startswith("<"):
        try:
            root = ElementTree.fromstring(text)
        except ElementTree.ParseError:
            return None
        if root.tag not in ("Error", f"{S3_NAMESPACE}Error"):
            return None
        code = _find_text(root, "Code")
        message = _find_text(root, "Message")
        if not code and not message:
            return None
        return ProviderErrorBody(code=code, message=message)

    if text.startswith("{"):
        try:
            data = json.loads(text)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        message = data.get("error") or data.get("message")
        if not isinstance(message, str) or not message:
            return None
        code = data.get("code") if isinstance(data.get("code"), str) else ""
        return ProviderErrorBody(code=code, message=message)

    return None
