"""
Retry engine for single API requests.

Issues one logical request, classifies each physical outcome and applies
the matching policy:

- replication lag above ``maxlag``: wait for the server's hint and redo the
  attempt without consuming an attempt credit;
- rate limited / read-only: wait a fixed interval, one credit per retry;
- network failure, HTTP 5xx or empty body: retry at once, one credit;
- fatal server conditions: raise immediately.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, Optional

import requests

from ..client.requests import Request, RawResponse
from ..client.session import SessionStore
from ..runtime.decoder import ResponseDecoder, ApiErrorInfo, header_value
from ..runtime.errors import WikiError, ErrorKind, classify_error_code, error_from_api


DEFAULT_SOFT_SUCCESS_CODES: FrozenSet[str] = frozenset({
    "alreadyrolled",
    "fileexists-no-change",
})


class _TransientFailure(Exception):
    """Internal signal for a billed, immediately retried failure."""

    def __init__(self, message: str, kind: ErrorKind, code: Optional[str] = None,
                 cause: Optional[Exception] = None, wait: float = 0.0):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.code = code
        self.cause = cause
        self.wait = wait


@dataclass
class RetryStats:
    """Counters for one executor."""
    total_requests: int = 0
    total_retries: int = 0
    lag_waits: int = 0
    total_failures: int = 0
    total_successes: int = 0


class RetryExecutor:
    """
    Executes requests with lag, rate-limit and network retry handling.

    At most ``max_attempts`` attempts are billed against transient failures.
    Lag waits are not billed; each is bounded by the server's hint.
    """

    def __init__(
        self,
        transport,
        session: SessionStore,
        decoder: ResponseDecoder,
        maxlag: int = 5,
        max_attempts: int = 3,
        retry_wait: float = 10.0,
        lag_fallback_wait: float = 10.0,
        max_lag_wait: Optional[float] = None,
        soft_success_codes: Iterable[str] = DEFAULT_SOFT_SUCCESS_CODES,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the executor.

        Args:
            transport: Object with ``send(request, cookies) -> RawResponse``
            session: Session whose cookies are attached and refreshed
            decoder: Response decoder
            maxlag: Replication lag threshold in seconds; < 1 disables
            max_attempts: Default attempt budget for transient failures
            retry_wait: Wait after a rate-limited or read-only response
            lag_fallback_wait: Lag wait when the server gives no hint
            max_lag_wait: Optional cap on total lag waiting per request
            soft_success_codes: Error codes treated as success
            sleep: Sleep function
            logger: Logger to use instead of the module logger
        """
        if max_attempts < 1:
            raise WikiError("max_attempts must be at least 1", ErrorKind.INVALID_ARGUMENT)
        self.transport = transport
        self.session = session
        self.decoder = decoder
        self.maxlag = maxlag
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait
        self.lag_fallback_wait = lag_fallback_wait
        self.max_lag_wait = max_lag_wait
        self.soft_success_codes = frozenset(code.lower() for code in soft_success_codes)
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)
        self.stats = RetryStats()

    def prepare(self, request: Request) -> Request:
        """Attach the maxlag parameter when enabled."""
        if self.maxlag >= 1 and "maxlag" not in request.params():
            return request.with_query(maxlag=self.maxlag)
        return request

    def execute(self, request: Request, max_attempts: Optional[int] = None) -> RawResponse:
        """
        Execute a request with retries.

        Args:
            request: Request to send
            max_attempts: Attempt budget; defaults to the executor's

        Returns:
            The successful raw response

        Raises:
            WikiError: Fatal errors at once, transient ones once the budget
                is exhausted (``NETWORK`` carries the I/O error as cause)
        """
        budget = self.max_attempts if max_attempts is None else max_attempts
        if budget < 1:
            raise WikiError("max_attempts must be at least 1", ErrorKind.INVALID_ARGUMENT)

        request = self.prepare(request)
        action = request.action or "request"
        billed = 0
        lag_waited = 0.0

        while True:
            try:
                response = self._attempt(request)
                lag_wait = self._lag_wait(response)
                if lag_wait is not None:
                    if self.max_lag_wait is not None and lag_waited + lag_wait > self.max_lag_wait:
                        self.stats.total_failures += 1
                        raise WikiError(
                            f"Replication lag persisted for more than {self.max_lag_wait}s during {action}",
                            ErrorKind.MAXLAG,
                            code="maxlag",
                        )
                    self._logger.warning(
                        f"Database lag exceeds {self.maxlag}s during {action}; sleeping {lag_wait:.1f}s"
                    )
                    self.stats.lag_waits += 1
                    lag_waited += lag_wait
                    self._sleep(lag_wait)
                    continue
                result = self._classify(request, response)
                self.stats.total_successes += 1
                return result

            except _TransientFailure as failure:
                billed += 1
                if billed >= budget:
                    self.stats.total_failures += 1
                    self._logger.error(f"{action} failed after {billed} attempt(s): {failure.message}")
                    raise WikiError(
                        failure.message,
                        failure.kind,
                        code=failure.code,
                        details={"attempts": billed},
                        cause=failure.cause,
                    ) from failure.cause
                self.stats.total_retries += 1
                if failure.wait > 0:
                    self._logger.warning(
                        f"{failure.message}; retrying {action} in {failure.wait:.1f}s "
                        f"(attempt {billed + 1}/{budget})"
                    )
                    self._sleep(failure.wait)
                else:
                    self._logger.warning(
                        f"{failure.message}; retrying {action} (attempt {billed + 1}/{budget})"
                    )

    def _attempt(self, request: Request) -> RawResponse:
        self.stats.total_requests += 1
        try:
            response = self.transport.send(request, self.session.cookies_for(request))
        except requests.RequestException as e:
            raise _TransientFailure(f"Network error: {e}", ErrorKind.NETWORK, cause=e)
        self.session.update_cookies(response.cookies)
        return response

    def _lag_wait(self, response: RawResponse) -> Optional[float]:
        """Seconds to wait for replication lag, or None if not lagged."""
        lagged = False
        if self.maxlag >= 1:
            lag = self.decoder.decode_lag_header(response.headers)
            lagged = lag is not None and lag >= self.maxlag
        if not lagged and response.body:
            error = self.decoder.decode_error(response.body)
            lagged = error is not None and classify_error_code(error.code) == ErrorKind.MAXLAG
        if not lagged:
            return None
        hint = self.decoder.decode_retry_after(response.headers)
        return hint if hint is not None else self.lag_fallback_wait

    def _classify(self, request: Request, response: RawResponse) -> RawResponse:
        if response.status_code >= 500:
            raise _TransientFailure(f"HTTP {response.status_code} from server", ErrorKind.NETWORK,
                                    code=str(response.status_code))
        if 300 <= response.status_code < 400:
            location = header_value(response.headers, "Location")
            self.stats.total_failures += 1
            self._logger.error(f"Endpoint redirected to {location}; configure the final API URL")
            raise WikiError(f"HTTP {response.status_code} redirect to {location}", ErrorKind.API_ERROR,
                            code=str(response.status_code), details={"location": location})
        if not response.body or not response.body.strip():
            raise _TransientFailure("Received empty response from server", ErrorKind.NETWORK)

        error = self.decoder.decode_error(response.body)
        if error is not None:
            return self._handle_api_error(request, response, error)

        if response.status_code >= 400:
            raise WikiError(f"HTTP {response.status_code} from server", ErrorKind.API_ERROR,
                            code=str(response.status_code))
        return response

    def _handle_api_error(self, request: Request, response: RawResponse, error: ApiErrorInfo) -> RawResponse:
        action = request.action or "request"
        code = (error.code or "").lower()
        if code in self.soft_success_codes:
            self._logger.info(f"{action}: nothing to do ({error.code}: {error.message})")
            return response

        kind = classify_error_code(code)
        if kind in (ErrorKind.RATE_LIMITED, ErrorKind.READ_ONLY):
            hint = self.decoder.decode_retry_after(response.headers) or 0.0
            label = "Server-side throttle hit" if kind == ErrorKind.RATE_LIMITED else "Database locked"
            raise _TransientFailure(f"{label} ({error.code})", kind, code=error.code,
                                    wait=max(self.retry_wait, hint))

        if kind == ErrorKind.ASSERTION_FAILED:
            self.session.invalidate_tokens()
        self.stats.total_failures += 1
        self._logger.error(f"Cannot {action}: {error.code} {error.message}".rstrip())
        raise error_from_api(error.code, error.message, details={"action": action})

    def get_stats(self) -> dict:
        """Get executor statistics."""
        stats = self.stats
        return {
            "total_requests": stats.total_requests,
            "total_retries": stats.total_retries,
            "lag_waits": stats.lag_waits,
            "total_successes": stats.total_successes,
            "total_failures": stats.total_failures,
            "retry_rate": stats.total_retries / max(stats.total_requests, 1),
        }


__all__ = [
    "DEFAULT_SOFT_SUCCESS_CODES",
    "RetryStats",
    "RetryExecutor",
]
