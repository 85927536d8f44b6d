"""
Request and response types for the MediaWiki client.

A ``Request`` is built once and never mutated; derived requests (with a
limit, a continuation cursor or a token added) are new instances.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional, Dict, Any, Mapping

from requests.cookies import RequestsCookieJar

from ..runtime.codec import is_binary
from ..runtime.errors import WikiError, ErrorKind


GET = "GET"
POST = "POST"


@dataclass(frozen=True)
class Request:
    """One logical API request."""
    method: str
    endpoint: str
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)
    multipart: bool = False
    write: bool = False

    def __post_init__(self):
        """Validate and freeze the parameter maps."""
        if self.method not in (GET, POST):
            raise WikiError(f"Unsupported HTTP method: {self.method}", ErrorKind.INVALID_ARGUMENT)
        if self.method == GET and (self.body or self.multipart):
            raise WikiError("GET requests cannot carry a body", ErrorKind.INVALID_ARGUMENT)
        object.__setattr__(self, "query", MappingProxyType(dict(self.query)))
        object.__setattr__(self, "body", MappingProxyType(dict(self.body)))

    @classmethod
    def get(cls, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> "Request":
        """Build a GET request with all parameters in the query string."""
        return cls(GET, endpoint, query=dict(params or {}))

    @classmethod
    def post(cls, endpoint: str, params: Optional[Mapping[str, Any]] = None,
             write: bool = False, query: Optional[Mapping[str, Any]] = None) -> "Request":
        """
        Build a POST request.

        The request becomes multipart as soon as any body value is binary.

        Args:
            endpoint: API endpoint URL
            params: Body parameters
            write: Whether this is a write-class action
            query: Optional query-string parameters
        """
        body = dict(params or {})
        multipart = any(is_binary(value) for value in body.values())
        return cls(POST, endpoint, query=dict(query or {}), body=body, multipart=multipart, write=write)

    @property
    def action(self) -> Optional[str]:
        """The API action name, if set."""
        return self.query.get("action") or self.body.get("action")

    def params(self) -> Dict[str, Any]:
        """All logical parameters, query first."""
        merged = dict(self.query)
        merged.update(self.body)
        return merged

    def with_params(self, **extra: Any) -> "Request":
        """
        Derive a request with extra parameters.

        GET requests receive them in the query string, POST requests in the
        body.
        """
        if self.method == GET:
            query = dict(self.query)
            query.update(extra)
            return Request(GET, self.endpoint, query=query, write=self.write)
        body = dict(self.body)
        body.update(extra)
        multipart = self.multipart or any(is_binary(value) for value in extra.values())
        return Request(POST, self.endpoint, query=dict(self.query), body=body,
                       multipart=multipart, write=self.write)

    def with_query(self, **extra: Any) -> "Request":
        """Derive a request with extra query-string parameters."""
        query = dict(self.query)
        query.update(extra)
        return Request(self.method, self.endpoint, query=query, body=dict(self.body),
                       multipart=self.multipart, write=self.write)


@dataclass
class RawResponse:
    """One physical HTTP response."""
    status_code: int
    body: str
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Optional[RequestsCookieJar] = None
    url: Optional[str] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        """Whether the HTTP status is below 400."""
        return self.status_code < 400


ContinuationCursor = Dict[str, str]


__all__ = [
    "GET",
    "POST",
    "Request",
    "RawResponse",
    "ContinuationCursor",
]
