"""
Response decoding boundary.

The request core never interprets response bodies itself. It asks a
``ResponseDecoder`` whether a body carries an error, a continuation cursor
or an upload status, and reads lag/retry hints from the headers.
``XmlResponseDecoder`` implements this for ``format=xml`` responses.
"""

from __future__ import annotations
import logging
import math
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


logger = logging.getLogger(__name__)

LAG_HEADER = "X-Database-Lag"
RETRY_AFTER_HEADER = "Retry-After"


@dataclass(frozen=True)
class ApiErrorInfo:
    """Error code and message reported by the server."""
    code: str
    message: str = ""


@dataclass(frozen=True)
class UploadResult:
    """Status of one upload request."""
    result: str
    filekey: Optional[str] = None
    offset: Optional[int] = None


def header_value(headers: Optional[Mapping[str, Any]], name: str) -> Optional[str]:
    """Case-insensitive header lookup that also works on plain dicts."""
    if not headers:
        return None
    value = headers.get(name)
    if value is not None:
        return str(value)
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return str(candidate)
    return None


def _parse_seconds(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(seconds):
        return None
    return max(seconds, 0.0)


class ResponseDecoder(ABC):
    """
    Caller-supplied capability for reading responses.

    Header hint parsing is shared; body decoding is format specific.
    """

    @abstractmethod
    def decode_error(self, body: str) -> Optional[ApiErrorInfo]:
        """Return the server error carried by ``body``, if any."""

    @abstractmethod
    def decode_continuation(self, body: str) -> Optional[Dict[str, str]]:
        """Return the continuation cursor carried by ``body``, if any."""

    @abstractmethod
    def decode_upload_result(self, body: str) -> Optional[UploadResult]:
        """Return the upload status carried by ``body``, if any."""

    @abstractmethod
    def decode_token(self, body: str, token_type: str) -> Optional[str]:
        """Return the token of ``token_type`` carried by ``body``, if any."""

    @abstractmethod
    def decode_identity(self, body: str) -> Optional[Dict[str, Any]]:
        """
        Return the current user carried by a userinfo response.

        The mapping has ``name``, ``rights``, ``groups`` and ``messages``
        keys; None means the session is anonymous.
        """

    @abstractmethod
    def decode_login(self, body: str) -> Optional[Dict[str, str]]:
        """Return ``result``, ``reason`` and ``username`` of a login response."""

    def decode_lag_header(self, headers: Optional[Mapping[str, Any]]) -> Optional[float]:
        """Replication lag in seconds reported by the server."""
        return _parse_seconds(header_value(headers, LAG_HEADER))

    def decode_retry_after(self, headers: Optional[Mapping[str, Any]]) -> Optional[float]:
        """Server-suggested wait in seconds before retrying."""
        return _parse_seconds(header_value(headers, RETRY_AFTER_HEADER))


class XmlResponseDecoder(ResponseDecoder):
    """Decoder for MediaWiki ``format=xml`` responses."""

    def parse(self, body: str) -> Optional[ET.Element]:
        """
        Parse a response body.

        Args:
            body: Raw response text

        Returns:
            Root element, or None if the body is not well-formed XML
        """
        if not body or not body.strip():
            return None
        try:
            return ET.fromstring(body)
        except ET.ParseError as e:
            logger.debug(f"Response body is not well-formed XML: {e}")
            return None

    def decode_error(self, body: str) -> Optional[ApiErrorInfo]:
        root = self.parse(body)
        if root is None:
            return None
        error = root if root.tag == "error" else root.find("error")
        if error is None:
            return None
        return ApiErrorInfo(code=error.get("code", ""), message=error.get("info", ""))

    def decode_continuation(self, body: str) -> Optional[Dict[str, str]]:
        root = self.parse(body)
        if root is None:
            return None
        node = root.find("continue")
        if node is None or not node.attrib:
            return None
        return dict(node.attrib)

    def decode_upload_result(self, body: str) -> Optional[UploadResult]:
        root = self.parse(body)
        if root is None:
            return None
        node = root.find("upload")
        if node is None:
            return None
        offset = node.get("offset")
        return UploadResult(
            result=node.get("result", ""),
            filekey=node.get("filekey") or node.get("sessionkey"),
            offset=int(offset) if offset is not None else None,
        )

    def decode_token(self, body: str, token_type: str) -> Optional[str]:
        root = self.parse(body)
        if root is None:
            return None
        node = root.find("query/tokens")
        if node is None:
            return None
        return node.get(f"{token_type}token")

    def decode_identity(self, body: str) -> Optional[Dict[str, Any]]:
        root = self.parse(body)
        if root is None:
            return None
        node = root.find("query/userinfo")
        if node is None or "anon" in node.attrib:
            return None
        return {
            "name": node.get("name", ""),
            "rights": [r.text for r in node.findall("rights/r") if r.text],
            "groups": [g.text for g in node.findall("groups/g") if g.text],
            "messages": "messages" in node.attrib,
        }

    def decode_login(self, body: str) -> Optional[Dict[str, str]]:
        root = self.parse(body)
        if root is None:
            return None
        node = root.find("login")
        if node is None:
            return None
        return {
            "result": node.get("result", ""),
            "reason": node.get("reason", ""),
            "username": node.get("lgusername", ""),
        }


__all__ = [
    "LAG_HEADER",
    "RETRY_AFTER_HEADER",
    "ApiErrorInfo",
    "UploadResult",
    "ResponseDecoder",
    "XmlResponseDecoder",
    "header_value",
]
