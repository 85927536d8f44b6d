"""
MediaWiki Python Client

Resilient request execution for MediaWiki ``api.php`` endpoints: retries
through replication lag, rate limits and read-only windows, batches bulk
lookups, drives paged queries to completion and uploads large files in
chunks.
"""

# Client facade
from .api_client import __version__, ClientConfig, WikiClient, site_client

# Runtime components
from .runtime.errors import ErrorKind, WikiError, EncodingError, UnsupportedValueType, classify_error_code
from .runtime.codec import Blob, encode_param, encode_params
from .runtime.decoder import ResponseDecoder, XmlResponseDecoder

# Request core
from .client import Request, RawResponse, AssertionMode, UserIdentity, SessionSnapshot, SessionStore
from .client import Throttle, PaginationDriver
from .recovery import RetryExecutor, RetryStats
from .performance import CapacityModel, BatchPlan, BatchPlanner
from .transport import HttpTransport

# Operations
from .operations import (
    ChunkedUploadSession, UploadState,
    PageInfo, normalize_title, get_page_info, get_category_members, edit, upload_file
)

__all__ = [
    "__version__",

    # Client
    "ClientConfig",
    "WikiClient",
    "site_client",

    # Errors
    "ErrorKind",
    "WikiError",
    "EncodingError",
    "UnsupportedValueType",
    "classify_error_code",

    # Encoding and decoding
    "Blob",
    "encode_param",
    "encode_params",
    "ResponseDecoder",
    "XmlResponseDecoder",

    # Request core
    "Request",
    "RawResponse",
    "AssertionMode",
    "UserIdentity",
    "SessionSnapshot",
    "SessionStore",
    "Throttle",
    "PaginationDriver",
    "RetryExecutor",
    "RetryStats",
    "CapacityModel",
    "BatchPlan",
    "BatchPlanner",
    "HttpTransport",

    # Operations
    "ChunkedUploadSession",
    "UploadState",
    "PageInfo",
    "normalize_title",
    "get_page_info",
    "get_category_members",
    "edit",
    "upload_file",
]
