"""Tests for CORS XML rendering and provider error parsing."""

from xml.etree import ElementTree

from foundrykit.xml_utils import ProviderErrorBody, parse_error_response, render_cors_configuration


class TestRenderCorsConfiguration:
    """Tests for render_cors_configuration()."""

    def test_basic_rule(self):
        """The document carries one rule for the origin."""
        xml = render_cors_configuration("https://vtt.example.com")
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert "<AllowedOrigin>https://vtt.example.com</AllowedOrigin>" in xml
        assert "<AllowedMethod>GET</AllowedMethod>" in xml
        assert "<AllowedMethod>HEAD</AllowedMethod>" in xml
        assert "<AllowedHeader>*</AllowedHeader>" in xml
        assert "<MaxAgeSeconds>3600</MaxAgeSeconds>" in xml

    def test_parses(self):
        """The document is well-formed with a single CORSRule."""
        root = ElementTree.fromstring(render_cors_configuration("https://a.example.com").encode())
        assert root.tag == "CORSConfiguration"
        assert len(root.findall("CORSRule")) == 1

    def test_custom_methods(self):
        xml = render_cors_configuration(
            "https://a.example.com", allowed_methods=("GET", "PUT"), max_age_seconds=60
        )
        assert "<AllowedMethod>PUT</AllowedMethod>" in xml
        assert "<AllowedMethod>HEAD</AllowedMethod>" not in xml
        assert "<MaxAgeSeconds>60</MaxAgeSeconds>" in xml

    def test_escapes_origin(self):
        xml = render_cors_configuration("https://a.example.com/?x=<1>&y")
        assert "&lt;1&gt;&amp;y" in xml

    def test_no_namespace(self):
        assert "xmlns" not in render_cors_configuration("*")


class TestParseErrorResponse:
    """Tests for parse_error_response()."""

    def test_s3_error(self):
        body = (
            '<?xml version="1.0" encoding="UTF-8"?>'
            "<Error><Code>BucketAlreadyExists</Code>"
            "<Message>The requested bucket name is not available.</Message>"
            "<RequestId>tx0001</RequestId></Error>"
        )
        assert parse_error_response(body) == ProviderErrorBody(
            code="BucketAlreadyExists",
            message="The requested bucket name is not available.",
        )

    def test_namespaced_error(self):
        body = (
            '<Error xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
            "<Code>AccessDenied</Code><Message>Access Denied</Message></Error>"
        )
        assert parse_error_response(body) == ProviderErrorBody("AccessDenied", "Access Denied")

    def test_json_error(self):
        assert parse_error_response('{"error": "nope", "code": "Bad"}') == ProviderErrorBody(
            "Bad", "nope"
        )

    def test_json_message_key(self):
        assert parse_error_response('{"message": "slow down"}') == ProviderErrorBody("", "slow down")

    def test_not_an_error_document(self):
        assert parse_error_response("<ListAllMyBucketsResult/>") is None

    def test_malformed_xml(self):
        assert parse_error_response("<Error><Code>") is None

    def test_plain_text(self):
        assert parse_error_response("Service Unavailable") is None

    def test_empty(self):
        assert parse_error_response("") is None
        assert parse_error_response("   ") is None
