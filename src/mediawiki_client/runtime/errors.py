"""
MediaWiki Client Error Model

This module provides the error handling framework for the client core: a
single tagged error type whose ``kind`` tells callers whether a failure is
transient, fatal or a programming mistake, plus the mapping from MediaWiki
API error codes to those kinds.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, FrozenSet
from enum import Enum


class ErrorKind(Enum):
    """Failure categories understood by the request core."""

    # Transient-recoverable
    MAXLAG = "maxlag"
    RATE_LIMITED = "rate_limited"
    READ_ONLY = "read_only"
    NETWORK = "network"

    # Fatal / domain
    PERMISSION_DENIED = "permission_denied"
    PROTECTED = "protected"
    BLOCKED = "blocked"
    ASSERTION_FAILED = "assertion_failed"
    CREDENTIALS = "credentials"
    CONFLICT = "conflict"
    API_ERROR = "api_error"
    PROTOCOL = "protocol"

    # Programmer errors
    ENCODING = "encoding"
    UNSUPPORTED_VALUE = "unsupported_value"
    INVALID_ARGUMENT = "invalid_argument"


TRANSIENT_KINDS: FrozenSet[ErrorKind] = frozenset({
    ErrorKind.MAXLAG,
    ErrorKind.RATE_LIMITED,
    ErrorKind.READ_ONLY,
    ErrorKind.NETWORK,
})

PROGRAMMER_KINDS: FrozenSet[ErrorKind] = frozenset({
    ErrorKind.ENCODING,
    ErrorKind.UNSUPPORTED_VALUE,
    ErrorKind.INVALID_ARGUMENT,
})


class WikiError(Exception):
    """
    Base class for all client errors.

    Callers branch on ``kind`` rather than on the exception type.
    """

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.API_ERROR,
                 code: Optional[str] = None, details: Optional[Dict[str, Any]] = None,
                 cause: Optional[Exception] = None):
        """
        Initialize a client error.

        Args:
            message: Error message
            kind: Error category
            code: Server-side error code, when the server supplied one
            details: Additional error details
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.code = code
        self.details = details or {}
        self.cause = cause

    @property
    def is_transient(self) -> bool:
        """Whether the failure belongs to a retryable category."""
        return self.kind in TRANSIENT_KINDS

    @property
    def is_fatal(self) -> bool:
        """Whether the failure is a fatal domain or protocol error."""
        return self.kind not in TRANSIENT_KINDS and self.kind not in PROGRAMMER_KINDS

    def __str__(self) -> str:
        """String representation of the error."""
        label = self.kind.name if self.code is None else f"{self.kind.name}:{self.code}"
        parts = [f"[{label}] {self.message}"]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.code is not None:
            result["code"] = self.code
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class EncodingError(WikiError, ValueError):
    """A parameter value cannot be encoded for this request."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorKind.ENCODING, details=details)


class UnsupportedValueType(WikiError, TypeError):
    """A parameter value has a type the encoder does not know."""

    def __init__(self, value: Any):
        super().__init__(
            f"Unsupported parameter type: {type(value).__name__}",
            ErrorKind.UNSUPPORTED_VALUE,
            details={"type": type(value).__name__},
        )


# Exact MediaWiki error codes
_CODE_KINDS: Dict[str, ErrorKind] = {
    "maxlag": ErrorKind.MAXLAG,
    "ratelimited": ErrorKind.RATE_LIMITED,
    "readonly": ErrorKind.READ_ONLY,
    "autoblocked": ErrorKind.BLOCKED,
    "permissiondenied": ErrorKind.PERMISSION_DENIED,
    "cantcreate": ErrorKind.PERMISSION_DENIED,
    "noedit": ErrorKind.PERMISSION_DENIED,
    "protectedpage": ErrorKind.PROTECTED,
    "protectedtitle": ErrorKind.PROTECTED,
    "protectednamespace": ErrorKind.PROTECTED,
    "cascadeprotected": ErrorKind.PROTECTED,
    "badtoken": ErrorKind.ASSERTION_FAILED,
    "notloggedin": ErrorKind.ASSERTION_FAILED,
    "assertuserfailed": ErrorKind.ASSERTION_FAILED,
    "assertbotfailed": ErrorKind.ASSERTION_FAILED,
    "assertnameduserfailed": ErrorKind.ASSERTION_FAILED,
    "editconflict": ErrorKind.CONFLICT,
    "articleexists": ErrorKind.CONFLICT,
    "fileexists-no-change": ErrorKind.CONFLICT,
    "wrongpassword": ErrorKind.CREDENTIALS,
    "mustbeloggedin": ErrorKind.CREDENTIALS,
    "login-failed": ErrorKind.CREDENTIALS,
}

# Code prefixes covering families such as blocked/blockedfrommail
_PREFIX_KINDS = (
    ("blocked", ErrorKind.BLOCKED),
    ("assert", ErrorKind.ASSERTION_FAILED),
)


def classify_error_code(code: Optional[str]) -> ErrorKind:
    """
    Map a server error code onto an error kind.

    Args:
        code: Error code reported by the server

    Returns:
        The matching kind, ``API_ERROR`` for codes the core does not know
    """
    if not code:
        return ErrorKind.API_ERROR
    code = code.strip().lower()
    if code in _CODE_KINDS:
        return _CODE_KINDS[code]
    for prefix, kind in _PREFIX_KINDS:
        if code.startswith(prefix):
            return kind
    return ErrorKind.API_ERROR


def error_from_api(code: Optional[str], message: Optional[str],
                   details: Optional[Dict[str, Any]] = None) -> WikiError:
    """
    Create an error from a decoded server error.

    Args:
        code: Server error code
        message: Server-supplied human readable text

    Returns:
        A WikiError tagged with the classified kind
    """
    kind = classify_error_code(code)
    return WikiError(message or f"MediaWiki error {code}", kind, code=code, details=details)


__all__ = [
    "ErrorKind",
    "TRANSIENT_KINDS",
    "PROGRAMMER_KINDS",
    "WikiError",
    "EncodingError",
    "UnsupportedValueType",
    "classify_error_code",
    "error_from_api",
]
