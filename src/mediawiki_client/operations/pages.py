"""
Page operations built on the request core.

Each function takes a WikiClient and exercises one core path: batched
lookups, paged lists, throttled writes and chunked uploads.
"""

from __future__ import annotations
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Optional

from ..client.requests import RawResponse
from ..runtime.errors import WikiError, ErrorKind
from .upload import UploadSource

if TYPE_CHECKING:
    from ..api_client import WikiClient


CATEGORY_PREFIX = "Category:"

_SPACES = re.compile(r"[ _]+")


def normalize_title(title: str) -> str:
    """
    Normalize a page title the way the server does for the default
    (first-letter) case setting.

    Args:
        title: Title as supplied by the caller

    Returns:
        Title with underscores as spaces, runs of spaces collapsed and the
        first letter upper-cased

    Raises:
        WikiError: ``INVALID_ARGUMENT`` for blank titles
    """
    normalized = _SPACES.sub(" ", str(title)).strip()
    if not normalized:
        raise WikiError("Title must not be blank", ErrorKind.INVALID_ARGUMENT)
    return normalized[0].upper() + normalized[1:]


@dataclass(frozen=True)
class PageInfo:
    """Basic information about one page."""
    title: str
    exists: bool
    page_id: Optional[int] = None
    namespace: int = 0
    length: Optional[int] = None
    last_revision_id: Optional[int] = None
    touched: Optional[str] = None

    @classmethod
    def from_element(cls, page: ET.Element) -> PageInfo:
        missing = "missing" in page.attrib or "invalid" in page.attrib
        return cls(
            title=page.get("title", ""),
            exists=not missing,
            page_id=_int_or_none(page.get("pageid")),
            namespace=int(page.get("ns", "0")),
            length=_int_or_none(page.get("length")),
            last_revision_id=_int_or_none(page.get("lastrevid")),
            touched=page.get("touched"),
        )


def _int_or_none(value: Optional[str]) -> Optional[int]:
    return int(value) if value is not None else None


def _root(response: RawResponse) -> ET.Element:
    try:
        return ET.fromstring(response.body)
    except ET.ParseError as e:
        raise WikiError("Malformed response body", ErrorKind.PROTOCOL, cause=e) from e


def get_page_info(client: WikiClient, titles: Iterable[str]) -> List[Optional[PageInfo]]:
    """
    Look up basic information for many pages.

    Titles are batched to the session's limits; duplicates and titles that
    normalize to the same page share one result.

    Args:
        client: Client to use
        titles: Page titles in any order

    Returns:
        One entry per input title, in input order; None where the server
        returned nothing for the title
    """
    plan = client.plan_batches(titles, normalize=normalize_title)
    results: Dict[str, PageInfo] = {}
    for chunk in plan:
        response = client.execute(client.request({
            "action": "query",
            "prop": "info",
            "titles": list(chunk),
        }))
        root = _root(response)
        for page in root.iterfind("query/pages/page"):
            info = PageInfo.from_element(page)
            results[info.title] = info
        for mapping in root.iterfind("query/normalized/n"):
            target = results.get(mapping.get("to", ""))
            if target is not None:
                results[mapping.get("from", "")] = target
    return plan.reassemble(results)


def get_category_members(client: WikiClient, category: str,
                         limit: Optional[int] = None) -> Iterator[str]:
    """
    Iterate over the titles of a category's members.

    Args:
        client: Client to use
        category: Category name, with or without the ``Category:`` prefix
        limit: Maximum number of titles; None for all of them

    Returns:
        Lazy iterator over member titles in server order
    """
    name = normalize_title(category)
    if not name.startswith(CATEGORY_PREFIX):
        name = CATEGORY_PREFIX + name

    def decode(response: RawResponse) -> List[str]:
        return [cm.get("title", "") for cm in _root(response).iterfind("query/categorymembers/cm")]

    return client.query_paged(
        {"list": "categorymembers", "cmtitle": name, "cmprop": "title"},
        decode,
        limit_param="cmlimit",
        total_limit=limit,
    )


def edit(
    client: WikiClient,
    title: str,
    text: str,
    summary: str = "",
    minor: bool = False,
    bot: bool = True,
    basetimestamp: Optional[datetime] = None
) -> RawResponse:
    """
    Replace the text of a page.

    Args:
        client: Client to use
        title: Page to edit
        text: New page text
        summary: Edit summary
        minor: Mark as a minor edit
        bot: Mark as a bot edit (ignored for accounts without the bot right)
        basetimestamp: Timestamp of the revision the edit is based on, for
            edit-conflict detection

    Returns:
        The raw response of the edit

    Raises:
        WikiError: ``CONFLICT`` on an edit conflict, ``API_ERROR`` if the
            server did not report success
    """
    response = client.write({
        "action": "edit",
        "title": normalize_title(title),
        "text": text,
        "summary": summary,
        "minor": minor,
        "bot": bot,
        "basetimestamp": basetimestamp,
    })
    node = _root(response).find("edit")
    result = node.get("result", "") if node is not None else ""
    if result.lower() != "success":
        raise WikiError(
            f"Edit of {title} was not saved: {result or 'no result'}",
            ErrorKind.API_ERROR,
            code=f"edit-{(result or 'unknown').lower()}",
        )
    client.logger.info(f"Successfully edited {title}")
    return response


def upload_file(
    client: WikiClient,
    data: UploadSource,
    filename: str,
    text: str = "",
    comment: str = "",
    ignore_warnings: bool = False
) -> RawResponse:
    """Upload a file; large files go through the upload stash in chunks."""
    if filename.startswith("File:"):
        filename = filename[len("File:"):]
    return client.upload(data, filename, text=text, comment=comment, ignore_warnings=ignore_warnings)


__all__ = [
    "PageInfo",
    "normalize_title",
    "get_page_info",
    "get_category_members",
    "edit",
    "upload_file",
]
