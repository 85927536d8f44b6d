"""
Request building blocks for the MediaWiki client.

Re-exports the request model, session store, write throttle and pagination
driver.
"""

from .requests import Request, RawResponse, ContinuationCursor, GET, POST
from .session import AssertionMode, UserIdentity, SessionSnapshot, SessionStore
from .throttle import Throttle
from .pagination import PaginationDriver

__all__ = [
    "Request",
    "RawResponse",
    "ContinuationCursor",
    "GET",
    "POST",
    "AssertionMode",
    "UserIdentity",
    "SessionSnapshot",
    "SessionStore",
    "Throttle",
    "PaginationDriver",
]
