"""
Tests for the request and response model.
"""

import pytest

from mediawiki_client.client.requests import GET, POST, RawResponse, Request
from mediawiki_client.runtime.codec import Blob
from mediawiki_client.runtime.errors import ErrorKind, WikiError


ENDPOINT = "https://wiki.test/w/api.php"


class TestRequest:
    """Test request construction and derivation."""

    def test_get_puts_params_in_query(self):
        request = Request.get(ENDPOINT, {"action": "query", "list": "allpages"})
        assert request.method == GET
        assert request.query["list"] == "allpages"
        assert dict(request.body) == {}
        assert request.action == "query"

    def test_post_detects_multipart(self):
        request = Request.post(ENDPOINT, {"action": "upload", "file": Blob(b"x")})
        assert request.method == POST
        assert request.multipart
        assert not Request.post(ENDPOINT, {"action": "edit"}).multipart

    def test_request_is_immutable(self):
        request = Request.get(ENDPOINT, {"action": "query"})
        with pytest.raises(TypeError):
            request.query["action"] = "edit"

    def test_with_params_returns_new_request(self):
        template = Request.get(ENDPOINT, {"action": "query"})
        page = template.with_params(cmlimit=10, cmcontinue="x")
        assert "cmlimit" not in template.query
        assert page.query["cmcontinue"] == "x"

    def test_with_params_on_post_goes_to_body(self):
        request = Request.post(ENDPOINT, {"action": "edit"}, write=True).with_params(token="t")
        assert request.body["token"] == "t"
        assert request.write

    def test_with_query_keeps_body(self):
        request = Request.post(ENDPOINT, {"action": "edit"}).with_query(maxlag=5)
        assert request.query["maxlag"] == 5
        assert request.body["action"] == "edit"
        assert request.params() == {"maxlag": 5, "action": "edit"}

    def test_invalid_method(self):
        with pytest.raises(WikiError) as exc_info:
            Request("PUT", ENDPOINT)
        assert exc_info.value.kind == ErrorKind.INVALID_ARGUMENT

    def test_get_cannot_carry_body(self):
        with pytest.raises(WikiError):
            Request(GET, ENDPOINT, body={"a": 1})


class TestRawResponse:

    def test_ok(self):
        assert RawResponse(200, "<api/>").ok
        assert not RawResponse(503, "").ok
