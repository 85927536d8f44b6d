"""
MediaWiki API Client

This module provides the client value that owns configuration, session,
write throttle and retry engine, and exposes the core primitives used by
individual operations: single requests, throttled writes, paged queries,
batch planning and chunked uploads.
"""

from __future__ import annotations
import logging
import time
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, Mapping, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from .client.pagination import PageDecoder, PaginationDriver
from .client.requests import Request, RawResponse
from .client.session import AssertionMode, SessionSnapshot, SessionStore, UserIdentity
from .client.throttle import Throttle
from .operations.upload import DEFAULT_CHUNK_SIZE, MIN_CHUNK_SIZE, ChunkedUploadSession, UploadSource
from .performance.batch import BatchPlan, BatchPlanner, CapacityModel
from .recovery.retry import DEFAULT_SOFT_SUCCESS_CODES, RetryExecutor
from .runtime.decoder import ResponseDecoder, XmlResponseDecoder
from .runtime.errors import WikiError, ErrorKind
from .transport.http import HttpTransport


__version__ = "0.4.0"


class ClientConfig(BaseModel):
    """Configuration for the MediaWiki API client."""

    endpoint: str
    connect_timeout: float = Field(default=30.0, gt=0, description="Connect timeout in seconds")
    read_timeout: float = Field(default=180.0, gt=0, description="Read timeout in seconds")
    compress: bool = Field(default=True, description="Request gzip-compressed responses")
    user_agent: str = Field(default=f"mediawiki-python-client/{__version__}")
    maxlag: int = Field(default=5, ge=0, description="Replication lag threshold; 0 disables")
    throttle: float = Field(default=10.0, ge=0, description="Seconds between write actions")
    max_attempts: int = Field(default=3, ge=1)
    retry_wait: float = Field(default=10.0, ge=0, description="Wait after rate-limited/read-only responses")
    lag_fallback_wait: float = Field(default=10.0, ge=0, description="Lag wait without a Retry-After hint")
    max_lag_wait: Optional[float] = Field(default=None, gt=0, description="Cap on lag waiting per request")
    status_interval: int = Field(default=100, ge=1, description="Writes between status checks")
    assertion_mode: int = Field(default=0, ge=0, le=15)
    privileged_batch_cap: int = Field(default=500, ge=1)
    slow_batch_cap: int = Field(default=50, ge=1)
    url_length_budget: int = Field(default=8000, ge=256)
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=MIN_CHUNK_SIZE)
    single_upload_threshold: Optional[int] = Field(default=None, ge=0)
    soft_success_codes: FrozenSet[str] = Field(default=DEFAULT_SOFT_SUCCESS_CODES)
    response_format: str = Field(default="xml", description="Value of the format parameter")
    debug: bool = False

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"endpoint must be an http(s) URL, got {value!r}")
        return value

    @field_validator("chunk_size")
    @classmethod
    def _check_chunk_size(cls, value: int) -> int:
        if value & (value - 1):
            raise ValueError("chunk_size must be a power of two")
        return value

    def capacity(self) -> CapacityModel:
        """Batch limits described by this configuration."""
        return CapacityModel(
            privileged_cap=self.privileged_batch_cap,
            slow_cap=self.slow_batch_cap,
            url_budget=self.url_length_budget,
        )


class WikiClient:
    """
    MediaWiki API client.

    One instance owns one session. It is safe to share between threads;
    write actions from all threads are spaced by the configured throttle.
    """

    def __init__(
        self,
        config: Union[str, ClientConfig],
        transport: Optional[Any] = None,
        decoder: Optional[ResponseDecoder] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the client.

        Args:
            config: Either an endpoint URL string or a ClientConfig object
            transport: Object with ``send(request, cookies)``; defaults to
                an HttpTransport built from the config
            decoder: Response decoder; defaults to XmlResponseDecoder
            logger: Logger injected into every component
            sleep: Sleep function used for throttling and backoff
            clock: Monotonic clock used by the throttle
        """
        if isinstance(config, str):
            self.config = ClientConfig(endpoint=config)
        else:
            self.config = config

        self.logger = logger or logging.getLogger(__name__)
        if self.config.debug:
            self.logger.setLevel(logging.DEBUG)

        self.decoder = decoder or XmlResponseDecoder()
        self.transport = transport or HttpTransport(
            user_agent=self.config.user_agent,
            connect_timeout=self.config.connect_timeout,
            read_timeout=self.config.read_timeout,
            compress=self.config.compress,
            logger=self.logger,
        )
        self._owns_transport = transport is None
        self._sleep = sleep

        self.session = self._new_session()
        self.throttle = Throttle(self.config.throttle, clock=clock, sleep=sleep, logger=self.logger)
        self.executor = RetryExecutor(
            self.transport,
            self.session,
            self.decoder,
            maxlag=self.config.maxlag,
            max_attempts=self.config.max_attempts,
            retry_wait=self.config.retry_wait,
            lag_fallback_wait=self.config.lag_fallback_wait,
            max_lag_wait=self.config.max_lag_wait,
            soft_success_codes=self.config.soft_success_codes,
            sleep=sleep,
            logger=self.logger,
        )
        self.pagination = PaginationDriver(self.executor, self.decoder, logger=self.logger)
        self.planner = BatchPlanner(self.config.capacity(), logger=self.logger)

    def _new_session(self, snapshot: Optional[SessionSnapshot] = None) -> SessionStore:
        kwargs: Dict[str, Any] = dict(
            status_interval=self.config.status_interval,
            token_fetcher=self._fetch_token,
            status_checker=self.fetch_identity,
            logger=self.logger,
        )
        if snapshot is not None:
            return SessionStore.restore(snapshot, **kwargs)
        return SessionStore(assertion_mode=AssertionMode(self.config.assertion_mode), **kwargs)

    @property
    def endpoint(self) -> str:
        """Get the API endpoint."""
        return self.config.endpoint

    def close(self) -> None:
        """Close the transport if owned by this client."""
        if self._owns_transport:
            self.transport.close()

    def __enter__(self) -> WikiClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        identity = self.session.identity
        user = identity.username if identity else "anonymous"
        return f"WikiClient(endpoint={self.endpoint!r}, user={user!r})"

    # ==== Core primitives ====

    def request(self, params: Mapping[str, Any], post: bool = False, write: bool = False) -> Request:
        """
        Build a request against this client's endpoint.

        Args:
            params: API parameters
            post: Send as POST instead of GET
            write: Mark as a write-class action

        Returns:
            The request, with the response format parameter added
        """
        merged: Dict[str, Any] = {"format": self.config.response_format}
        merged.update(params)
        if post or write:
            return Request.post(self.endpoint, merged, write=write)
        return Request.get(self.endpoint, merged)

    def execute(self, request: Request, max_attempts: Optional[int] = None) -> RawResponse:
        """Execute one request with the retry policy."""
        return self.executor.execute(request, max_attempts)

    def _before_write(self) -> None:
        self.session.periodic_status_check()
        self.session.check_assertions()
        self.throttle.acquire()

    def write(self, params: Mapping[str, Any], token_type: str = "csrf",
              max_attempts: Optional[int] = None) -> RawResponse:
        """
        Perform a throttled, token-bearing write action.

        Args:
            params: API parameters including ``action``
            token_type: Token type to attach as ``token``
            max_attempts: Attempt budget for this request

        Returns:
            The successful raw response
        """
        self._before_write()
        body = dict(params)
        body.update(self.session.assert_params())
        body["token"] = self.session.token_for(token_type)
        response = self.execute(self.request(body, write=True), max_attempts)
        self.session.record_write()
        return response

    def query_paged(
        self,
        params: Mapping[str, Any],
        decode: PageDecoder,
        limit_param: str,
        per_page_limit: Optional[int] = None,
        total_limit: Optional[int] = None
    ) -> Iterator[Any]:
        """
        Iterate over every result of a list query.

        Args:
            params: Query parameters, e.g. ``{"list": "categorymembers", ...}``
            decode: Callable turning one page response into its items
            limit_param: Page-size parameter name, e.g. ``cmlimit``
            per_page_limit: Items per page; None requests the server maximum
            total_limit: Overall cap; None means all results
        """
        merged: Dict[str, Any] = {"action": "query", "continue": ""}
        merged.update(params)
        return self.pagination.run(self.request(merged), per_page_limit, total_limit, decode, limit_param)

    def capacity(self) -> CapacityModel:
        """Batch limits for the current session's privilege level."""
        return self.config.capacity().for_session(self.session.is_privileged)

    def plan_batches(
        self,
        keys: Iterable[Any],
        normalize: Optional[Callable[[Any], str]] = None,
        param_name: str = "titles",
        use_get: bool = True
    ) -> BatchPlan:
        """Partition bulk keys into server-sized chunks."""
        return self.planner.plan(keys, self.capacity(), normalize=normalize,
                                 param_name=param_name, use_get=use_get)

    def upload(
        self,
        data: UploadSource,
        filename: str,
        text: str = "",
        comment: str = "",
        ignore_warnings: bool = False,
        chunk_size: Optional[int] = None
    ) -> RawResponse:
        """
        Upload a file, in chunks when it is large.

        Args:
            data: File contents or a path
            filename: Target file name without namespace prefix
            text: Description page text
            comment: Upload summary
            ignore_warnings: Publish despite warnings
            chunk_size: Override the configured chunk size

        Returns:
            The response of the publishing request
        """
        self._before_write()
        base_params: Dict[str, Any] = {"format": self.config.response_format}
        base_params.update(self.session.assert_params())
        upload = ChunkedUploadSession(
            self.executor,
            self.decoder,
            self.endpoint,
            data,
            filename,
            token=self.session.token_for("csrf"),
            text=text,
            comment=comment,
            chunk_size=chunk_size or self.config.chunk_size,
            single_request_threshold=self.config.single_upload_threshold,
            ignore_warnings=ignore_warnings,
            base_params=base_params,
            logger=self.logger,
        )
        response = upload.run()
        self.session.record_write()
        return response

    # ==== Session lifecycle ====

    def _fetch_token(self, token_type: str) -> str:
        response = self.execute(self.request({"action": "query", "meta": "tokens", "type": token_type}))
        token = self.decoder.decode_token(response.body, token_type)
        if not token:
            raise WikiError(f"Server returned no {token_type} token", ErrorKind.PROTOCOL)
        return token

    def fetch_identity(self) -> Optional[UserIdentity]:
        """
        Ask the server who this session is logged in as.

        Returns:
            The identity, or None for an anonymous session
        """
        response = self.execute(self.request({
            "action": "query",
            "meta": "userinfo",
            "uiprop": ["rights", "groups", "hasmsg"],
        }))
        info = self.decoder.decode_identity(response.body)
        if info is None:
            return None
        return UserIdentity(
            username=info["name"],
            rights=frozenset(info.get("rights", ())),
            groups=frozenset(info.get("groups", ())),
            has_new_messages=bool(info.get("messages")),
        )

    def refresh_identity(self) -> Optional[UserIdentity]:
        """Re-read the identity from the server and store it."""
        identity = self.fetch_identity()
        self.session.set_identity(identity)
        return identity

    def login(self, username: str, password: str) -> UserIdentity:
        """
        Log in with a (bot) password.

        Args:
            username: Account name
            password: Password or bot password

        Returns:
            The logged-in identity

        Raises:
            WikiError: ``CREDENTIALS`` if the server rejects the login
        """
        response = self.execute(self.request({
            "action": "login",
            "lgname": username,
            "lgpassword": password,
            "lgtoken": self.session.token_for("login"),
        }, post=True))
        result = self.decoder.decode_login(response.body) or {}
        if result.get("result", "").lower() != "success":
            reason = result.get("reason") or result.get("result") or "unknown reason"
            self.logger.error(f"Failed to log in as {username}: {reason}")
            raise WikiError(f"Login failed: {reason}", ErrorKind.CREDENTIALS, code="login-failed")

        # Tokens are bound to the session that fetched them
        self.session.invalidate_tokens()
        identity = self.refresh_identity()
        if identity is None:
            raise WikiError("Server reports an anonymous session after login", ErrorKind.CREDENTIALS)
        self.logger.info(
            f"Successfully logged in as {identity.username}, highLimit = {self.session.is_privileged}"
        )
        return identity

    def logout(self) -> None:
        """Log out on the server and forget local session state."""
        if self.session.identity is not None:
            self.execute(self.request({
                "action": "logout",
                "token": self.session.token_for("csrf"),
            }, post=True))
        self.session.clear()
        self.throttle.reset()
        self.logger.info("Logged out")

    def snapshot(self) -> SessionSnapshot:
        """Export session state as plain data."""
        return self.session.snapshot()

    def restore(self, snapshot: SessionSnapshot) -> None:
        """Replace the session with one rebuilt from ``snapshot``."""
        self.session = self._new_session(snapshot)
        self.executor.session = self.session


def site_client(domain: str, script_path: str = "/w", **kwargs: Any) -> WikiClient:
    """
    Create a client for a wiki host.

    Args:
        domain: Host name, e.g. ``en.wikipedia.org``
        script_path: Path holding ``api.php``
        **kwargs: Extra ClientConfig fields

    Returns:
        A configured client
    """
    endpoint = f"https://{domain}{script_path.rstrip('/')}/api.php"
    return WikiClient(ClientConfig(endpoint=endpoint, **kwargs))


__all__ = [
    "__version__",
    "ClientConfig",
    "WikiClient",
    "site_client",
]
