"""Error definitions for foundrykit."""


class FoundryKitError(Exception):
    """A foundrykit error with code, message, and HTTP status.

    Attributes:
        code: Short error kind (e.g. "InvalidRequest", "NameConflict").
        message: Human-readable error description.
        http_status: The HTTP status code the relay answers with.
    """

    def __init__(self, code: str, message: str, http_status: int = 400) -> None:
        """Initialize the error.

        Args:
            code: Error kind.
            message: Error description.
            http_status: HTTP status code (default 400).
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status


class InvalidRequest(FoundryKitError):
    """Signer or provider input is malformed. Never retried."""

    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(code="InvalidRequest", message=message, http_status=400)


class NameConflict(FoundryKitError):
    """The bucket name is taken by another account."""

    def __init__(
        self,
        message: str = "This bucket name is already taken. Please choose a different name.",
        bucket: str = "",
    ) -> None:
        super().__init__(code="NameConflict", message=message, http_status=409)
        self.bucket = bucket


class TransportError(FoundryKitError):
    """The storage endpoint could not be reached or timed out.

    Safe to retry: a new attempt is signed with a fresh timestamp.
    """

    def __init__(self, message: str = "Storage endpoint unreachable") -> None:
        super().__init__(code="TransportError", message=message, http_status=504)


class ProviderError(FoundryKitError):
    """The storage provider answered with an unexpected status.

    Attributes:
        status: The provider's HTTP status code.
        provider_code: Error code parsed from the provider body, if any.
    """

    def __init__(self, message: str, status: int = 0, provider_code: str = "") -> None:
        super().__init__(code="ProviderError", message=message, http_status=502)
        self.status = status
        self.provider_code = provider_code


class MalformedKey(FoundryKitError):
    """An ASN.1 structure did not have the expected shape."""

    def __init__(self, message: str = "Malformed key") -> None:
        super().__init__(code="MalformedKey", message=message, http_status=500)
