"""
HTTP transport for the MediaWiki API.

Turns a ``Request`` into one physical exchange using ``requests``. GET
requests carry every parameter in the query string; POST requests are form
encoded, or ``multipart/form-data`` when any field is binary.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..client.requests import Request, RawResponse, GET
from ..runtime.codec import Blob, encode_params


TEXT_PART_TYPE = "text/plain; charset=UTF-8"


class HttpTransport:
    """
    Sends requests over a pooled ``requests.Session``.

    Cookies are owned by the SessionStore and passed in per request; the
    transport does not rely on the session's own cookie jar. Redirects are
    returned to the caller unfollowed.
    """

    def __init__(
        self,
        user_agent: str,
        connect_timeout: float = 30.0,
        read_timeout: float = 180.0,
        compress: bool = True,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the transport.

        Args:
            user_agent: User-Agent header sent with every request
            connect_timeout: Connect timeout in seconds
            read_timeout: Read timeout in seconds
            compress: Request gzip-compressed responses
            session: Optional requests.Session for connection pooling
            logger: Logger to use instead of the module logger
        """
        self.user_agent = user_agent
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.compress = compress
        self._session = session or requests.Session()
        self._owns_session = session is None
        self._logger = logger or logging.getLogger(__name__)

    @property
    def timeout(self) -> Tuple[float, float]:
        """(connect, read) timeout pair."""
        return (self.connect_timeout, self.read_timeout)

    def close(self) -> None:
        """Close the HTTP session if owned by this transport."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept-Encoding": "gzip" if self.compress else "identity",
        }

    def prepare(self, request: Request, cookies: Optional[Any] = None) -> requests.PreparedRequest:
        """
        Build the wire request.

        Args:
            request: Logical request
            cookies: Cookie jar to attach

        Returns:
            A prepared request ready to send
        """
        query = encode_params(request.query)
        if request.method == GET:
            wire = requests.Request(GET, request.endpoint, params=query,
                                    headers=self.headers(), cookies=cookies)
        elif request.multipart:
            wire = requests.Request(request.method, request.endpoint, params=query,
                                    files=self._multipart_fields(request),
                                    headers=self.headers(), cookies=cookies)
        else:
            wire = requests.Request(request.method, request.endpoint, params=query,
                                    data=encode_params(request.body),
                                    headers=self.headers(), cookies=cookies)
        return wire.prepare()

    def _multipart_fields(self, request: Request) -> List[Tuple[str, Tuple[Optional[str], bytes, str]]]:
        fields = []
        for name, value in encode_params(request.body, multipart=True).items():
            if isinstance(value, Blob):
                fields.append((name, (value.filename, value.data, value.content_type)))
            elif isinstance(value, bytes):
                fields.append((name, (name, value, "application/octet-stream")))
            else:
                fields.append((name, (None, value.encode("utf-8"), TEXT_PART_TYPE)))
        return fields

    def send(self, request: Request, cookies: Optional[Any] = None) -> RawResponse:
        """
        Perform one HTTP exchange.

        Args:
            request: Logical request
            cookies: Cookie jar to attach

        Returns:
            The raw response

        Raises:
            requests.RequestException: On network-level failure
        """
        prepared = self.prepare(request, cookies)
        self._logger.debug(f"{prepared.method} {prepared.url} (action={request.action})")
        # Only SessionStore cookies are sent, so redirects stay unfollowed
        response = self._session.send(prepared, timeout=self.timeout, allow_redirects=False)
        return RawResponse(
            status_code=response.status_code,
            body=response.text,
            headers=response.headers,
            cookies=response.cookies,
            url=response.url,
            elapsed=response.elapsed.total_seconds(),
        )


__all__ = ["HttpTransport", "TEXT_PART_TYPE"]
