"""
Tests for the retry executor.

Covers the attempt budget, lag handling outside the budget, rate-limit
waits, fatal short-circuits and soft-success codes.
"""

from unittest.mock import Mock

import pytest
import requests

from helpers import error_response, lag_response, xml_response

from mediawiki_client.client.requests import Request
from mediawiki_client.recovery.retry import RetryExecutor
from mediawiki_client.runtime.errors import ErrorKind, WikiError


ENDPOINT = "https://wiki.test/w/api.php"
OK = xml_response("<query/>")


@pytest.fixture
def request_():
    return Request.get(ENDPOINT, {"action": "query", "meta": "siteinfo"})


class TestAttemptBudget:
    """Test billing of transient failures."""

    def test_succeeds_after_budget_minus_one_failures(self, transport, executor, request_):
        transport.enqueue(requests.ConnectionError("reset"), requests.Timeout("slow"), OK)
        response = executor.execute(request_)
        assert response is OK
        assert transport.call_count == 3
        assert executor.get_stats()["total_retries"] == 2

    def test_exhausted_budget_raises_network_error(self, transport, executor, request_):
        cause = requests.ConnectionError("reset")
        transport.enqueue(cause, cause, cause)
        with pytest.raises(WikiError) as exc_info:
            executor.execute(request_)
        error = exc_info.value
        assert error.kind == ErrorKind.NETWORK
        assert error.cause is cause
        assert error.details["attempts"] == 3
        assert transport.call_count == 3

    def test_per_call_budget(self, transport, executor, request_):
        transport.enqueue(requests.ConnectionError("reset"))
        with pytest.raises(WikiError):
            executor.execute(request_, max_attempts=1)
        assert transport.call_count == 1

    def test_invalid_budget(self, executor, request_):
        with pytest.raises(WikiError) as exc_info:
            executor.execute(request_, max_attempts=0)
        assert exc_info.value.kind == ErrorKind.INVALID_ARGUMENT

    def test_server_error_and_empty_body_are_transient(self, transport, executor, request_):
        from mediawiki_client.client.requests import RawResponse
        transport.enqueue(RawResponse(503, "Service Unavailable"), RawResponse(200, ""), OK)
        assert executor.execute(request_) is OK
        assert transport.call_count == 3


class TestLag:
    """Test replication-lag handling."""

    def test_lag_waits_do_not_consume_budget(self, transport, executor, request_, clock):
        transport.enqueue(*[lag_response(8, retry_after=5) for _ in range(5)], OK)
        assert executor.execute(request_, max_attempts=1) is OK
        assert transport.call_count == 6
        assert clock.sleeps == [5.0] * 5

    def test_lag_fallback_wait(self, transport, executor, request_, clock):
        transport.enqueue(lag_response(8), OK)
        executor.execute(request_)
        assert clock.sleeps == [10.0]

    def test_lag_header_on_successful_body(self, transport, executor, request_, clock):
        lagged = xml_response("<query/>", headers={"X-Database-Lag": "6", "Retry-After": "2"})
        transport.enqueue(lagged, OK)
        assert executor.execute(request_) is OK
        assert clock.sleeps == [2.0]

    def test_lag_below_threshold_ignored(self, transport, executor, request_, clock):
        quiet = xml_response("<query/>", headers={"X-Database-Lag": "1"})
        transport.enqueue(quiet)
        assert executor.execute(request_) is quiet
        assert clock.sleeps == []

    def test_maxlag_parameter_added(self, transport, executor, request_):
        transport.enqueue(OK)
        executor.execute(request_)
        assert transport.params()["maxlag"] == 5

    def test_maxlag_disabled(self, transport, session, decoder, clock, request_):
        executor = RetryExecutor(transport, session, decoder, maxlag=0, sleep=clock.sleep)
        transport.enqueue(OK)
        executor.execute(request_)
        assert "maxlag" not in transport.params()

    def test_lag_wait_cap(self, transport, session, decoder, clock, request_):
        executor = RetryExecutor(transport, session, decoder, max_lag_wait=12, sleep=clock.sleep)
        transport.enqueue(*[lag_response(8, retry_after=5) for _ in range(5)])
        with pytest.raises(WikiError) as exc_info:
            executor.execute(request_)
        assert exc_info.value.kind == ErrorKind.MAXLAG
        assert clock.sleeps == [5.0, 5.0]


class TestServerConditions:
    """Test rate limits, read-only windows and fatal errors."""

    def test_rate_limited_waits_and_retries(self, transport, executor, request_, clock):
        transport.enqueue(error_response("ratelimited"), OK)
        assert executor.execute(request_) is OK
        assert clock.sleeps == [10.0]

    def test_retry_after_longer_than_wait(self, transport, executor, request_, clock):
        transport.enqueue(error_response("readonly", headers={"Retry-After": "30"}), OK)
        executor.execute(request_)
        assert clock.sleeps == [30.0]

    def test_infinite_retry_after_falls_back_to_wait(self, transport, executor, request_, clock):
        transport.enqueue(error_response("ratelimited", headers={"Retry-After": "inf"}), OK)
        assert executor.execute(request_) is OK
        assert clock.sleeps == [10.0]

    def test_rate_limit_budget_exhausted(self, transport, executor, request_):
        transport.enqueue(*[error_response("ratelimited") for _ in range(3)])
        with pytest.raises(WikiError) as exc_info:
            executor.execute(request_)
        assert exc_info.value.kind == ErrorKind.RATE_LIMITED
        assert transport.call_count == 3

    def test_blocked_is_not_retried(self, transport, executor, request_, clock):
        transport.enqueue(error_response("blocked", "You have been blocked"), OK)
        with pytest.raises(WikiError) as exc_info:
            executor.execute(request_)
        assert exc_info.value.kind == ErrorKind.BLOCKED
        assert exc_info.value.code == "blocked"
        assert transport.call_count == 1
        assert clock.sleeps == []

    def test_assertion_failure_invalidates_tokens(self, transport, executor, session, request_):
        session.set_token("csrf", "stale")
        transport.enqueue(error_response("assertbotfailed"))
        with pytest.raises(WikiError) as exc_info:
            executor.execute(request_)
        assert exc_info.value.kind == ErrorKind.ASSERTION_FAILED
        assert session.snapshot().tokens == {}

    def test_unknown_code_is_fatal(self, transport, executor, request_):
        transport.enqueue(error_response("internal_api_error_DBQueryError"))
        with pytest.raises(WikiError) as exc_info:
            executor.execute(request_)
        assert exc_info.value.kind == ErrorKind.API_ERROR

    def test_soft_success(self, transport, executor, request_):
        soft = error_response("alreadyrolled", "The last edit was already rolled back")
        transport.enqueue(soft)
        assert executor.execute(request_) is soft

    def test_redirect_is_not_followed(self, transport, executor, session, request_):
        redirect = xml_response(cookies={"moved": "1"})
        redirect.status_code = 301
        redirect.headers = {"Location": "https://wiki.test/api.php"}
        transport.enqueue(redirect)
        with pytest.raises(WikiError) as exc_info:
            executor.execute(request_)
        assert exc_info.value.kind == ErrorKind.API_ERROR
        assert exc_info.value.code == "301"
        assert exc_info.value.details["location"] == "https://wiki.test/api.php"
        assert transport.call_count == 1
        assert session.cookies_for(request_).get("moved") == "1"

    def test_http_client_error_without_body_error(self, transport, executor, request_):
        from mediawiki_client.client.requests import RawResponse
        transport.enqueue(RawResponse(404, "<html>Not Found</html>"))
        with pytest.raises(WikiError) as exc_info:
            executor.execute(request_)
        assert exc_info.value.code == "404"


class TestCookies:
    """Test cookie propagation through the executor."""

    def test_cookies_updated_from_every_response(self, transport, executor, session, request_):
        transport.enqueue(
            xml_response('<error code="ratelimited"/>', cookies={"first": "1"}),
            xml_response("<query/>", cookies={"second": "2"}),
        )
        executor.execute(request_)
        jar = session.cookies_for(request_)
        assert jar.get("first") == "1"
        assert jar.get("second") == "2"
        # the retried attempt carries the cookie set by the first response
        _, sent = transport.calls[1]
        assert sent.get("first") == "1"

    def test_transport_receives_session_cookies(self, session, decoder, clock, request_):
        transport = Mock()
        transport.send.return_value = OK
        executor = RetryExecutor(transport, session, decoder, sleep=clock.sleep)
        executor.execute(request_)
        sent_request, cookies = transport.send.call_args[0]
        assert sent_request.query["maxlag"] == 5
        assert cookies is not None
