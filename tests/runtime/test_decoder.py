"""
Tests for the XML response decoder.
"""

import pytest
from requests.structures import CaseInsensitiveDict

from helpers import xml_body

from mediawiki_client.runtime.decoder import XmlResponseDecoder, header_value


@pytest.fixture
def decoder():
    return XmlResponseDecoder()


class TestHeaders:
    """Test lag and retry hints."""

    def test_lag_header(self, decoder):
        assert decoder.decode_lag_header({"X-Database-Lag": "7"}) == 7.0

    def test_lag_header_case_insensitive_on_plain_dict(self, decoder):
        assert decoder.decode_lag_header({"x-database-lag": "3"}) == 3.0

    def test_retry_after_from_requests_headers(self, decoder):
        headers = CaseInsensitiveDict({"retry-after": "5"})
        assert decoder.decode_retry_after(headers) == 5.0

    def test_missing_or_garbled(self, decoder):
        assert decoder.decode_lag_header({}) is None
        assert decoder.decode_retry_after(None) is None
        assert decoder.decode_retry_after({"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}) is None

    def test_non_finite_values_ignored(self, decoder):
        assert decoder.decode_retry_after({"Retry-After": "inf"}) is None
        assert decoder.decode_retry_after({"Retry-After": "nan"}) is None
        assert decoder.decode_lag_header({"X-Database-Lag": "-inf"}) is None

    def test_header_value(self):
        assert header_value({"A": 1}, "a") == "1"


class TestBodies:
    """Test body decoding."""

    def test_error(self, decoder):
        info = decoder.decode_error(xml_body('<error code="ratelimited" info="Slow down"/>'))
        assert info.code == "ratelimited"
        assert info.message == "Slow down"

    def test_no_error(self, decoder):
        assert decoder.decode_error(xml_body("<query/>")) is None

    def test_malformed_body(self, decoder):
        assert decoder.parse("<api><unclosed") is None
        assert decoder.decode_error("") is None
        assert decoder.decode_continuation("not xml") is None

    def test_continuation(self, decoder):
        body = xml_body('<continue cmcontinue="page|123" continue="-||"/><query/>')
        assert decoder.decode_continuation(body) == {"cmcontinue": "page|123", "continue": "-||"}

    def test_no_continuation(self, decoder):
        assert decoder.decode_continuation(xml_body("<query/>")) is None

    def test_upload_result(self, decoder):
        body = xml_body('<upload result="Continue" filekey="abc.1.jpg" offset="4194304"/>')
        result = decoder.decode_upload_result(body)
        assert result.result == "Continue"
        assert result.filekey == "abc.1.jpg"
        assert result.offset == 4194304

    def test_upload_result_sessionkey(self, decoder):
        result = decoder.decode_upload_result(xml_body('<upload result="Success" sessionkey="k"/>'))
        assert result.filekey == "k"
        assert result.offset is None

    def test_token(self, decoder):
        body = xml_body('<query><tokens csrftoken="abc+\\"/></query>')
        assert decoder.decode_token(body, "csrf") == "abc+\\"
        assert decoder.decode_token(body, "login") is None

    def test_identity(self, decoder):
        body = xml_body(
            '<query><userinfo id="1" name="Bot" messages="">'
            "<groups><g>bot</g><g>user</g></groups>"
            "<rights><r>apihighlimits</r></rights></userinfo></query>"
        )
        identity = decoder.decode_identity(body)
        assert identity["name"] == "Bot"
        assert identity["groups"] == ["bot", "user"]
        assert identity["rights"] == ["apihighlimits"]
        assert identity["messages"] is True

    def test_anonymous_identity(self, decoder):
        body = xml_body('<query><userinfo id="0" name="127.0.0.1" anon=""/></query>')
        assert decoder.decode_identity(body) is None

    def test_login(self, decoder):
        body = xml_body('<login result="Failed" reason="Incorrect password"/>')
        assert decoder.decode_login(body) == {
            "result": "Failed", "reason": "Incorrect password", "username": ""
        }
