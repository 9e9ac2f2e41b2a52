"""Tests for input validation functions."""

import pytest

from foundrykit.errors import InvalidRequest
from foundrykit.sigv4 import Credentials
from foundrykit.validation import (
    validate_bucket_name,
    validate_credentials_fields,
    validate_origin,
    validate_region,
)


class TestValidateBucketName:
    """Tests for validate_bucket_name()."""

    # -- Valid names ----------------------------------------------------------

    def test_valid_simple(self):
        """A simple lowercase alphanumeric name passes."""
        validate_bucket_name("foundry-assets")

    def test_valid_three_chars(self):
        """Minimum length (3 chars) is accepted."""
        validate_bucket_name("abc")

    def test_valid_63_chars(self):
        """Maximum length (63 chars) is accepted."""
        validate_bucket_name("a" * 63)

    def test_valid_with_dots(self):
        validate_bucket_name("foundry.assets.eu")

    # -- Invalid names --------------------------------------------------------

    def test_empty(self):
        with pytest.raises(InvalidRequest, match="required"):
            validate_bucket_name("")

    def test_too_short(self):
        with pytest.raises(InvalidRequest):
            validate_bucket_name("ab")

    def test_too_long(self):
        with pytest.raises(InvalidRequest):
            validate_bucket_name("a" * 64)

    def test_uppercase(self):
        with pytest.raises(InvalidRequest):
            validate_bucket_name("Foundry-Assets")

    def test_underscore(self):
        with pytest.raises(InvalidRequest):
            validate_bucket_name("foundry_assets")

    def test_ip_address(self):
        with pytest.raises(InvalidRequest):
            validate_bucket_name("192.168.1.1")

    def test_xn_prefix(self):
        with pytest.raises(InvalidRequest):
            validate_bucket_name("xn--bucket")

    def test_reserved_suffix(self):
        with pytest.raises(InvalidRequest):
            validate_bucket_name("assets-s3alias")

    def test_consecutive_dots(self):
        with pytest.raises(InvalidRequest):
            validate_bucket_name("foundry..assets")

    def test_hyphen_edges(self):
        with pytest.raises(InvalidRequest):
            validate_bucket_name("-assets")
        with pytest.raises(InvalidRequest):
            validate_bucket_name("assets-")


class TestValidateCredentials:
    """Tests for validate_credentials_fields()."""

    def test_ok(self):
        validate_credentials_fields(Credentials("KEY", "SECRET"))

    def test_missing_key_id(self):
        with pytest.raises(InvalidRequest, match="access key id"):
            validate_credentials_fields(Credentials("  ", "SECRET"))

    def test_missing_secret(self):
        with pytest.raises(InvalidRequest, match="secret"):
            validate_credentials_fields(Credentials("KEY", ""))


class TestValidateRegion:
    """Tests for validate_region()."""

    def test_known(self):
        validate_region("fsn1", ["fsn1", "nbg1"])

    def test_empty(self):
        with pytest.raises(InvalidRequest):
            validate_region("", ["fsn1"])

    def test_unknown_lists_choices(self):
        with pytest.raises(InvalidRequest, match="fsn1, nbg1"):
            validate_region("nyc3", ["fsn1", "nbg1"])


class TestValidateOrigin:
    """Tests for validate_origin()."""

    @pytest.mark.parametrize(
        "origin",
        ["https://vtt.example.com", "http://localhost:30000", "https://vtt.example.com/", "*"],
    )
    def test_valid(self, origin):
        validate_origin(origin)

    @pytest.mark.parametrize(
        "origin",
        ["", "vtt.example.com", "ftp://vtt.example.com", "https://vtt.example.com/game", "https://a.example.com?x=1"],
    )
    def test_invalid(self, origin):
        with pytest.raises(InvalidRequest):
            validate_origin(origin)
