"""
Continuation-driven pagination.

Drives a list query page by page. Each request is the template plus a page
limit plus the cursor returned by the previous page; cursors are never
accumulated across pages.
"""

import logging
from typing import Callable, Iterator, List, Optional, TypeVar, Union

from ..runtime.decoder import ResponseDecoder
from ..runtime.errors import WikiError, ErrorKind
from .requests import Request, RawResponse, ContinuationCursor


T = TypeVar("T")

PageDecoder = Callable[[RawResponse], List[T]]


class PaginationDriver:
    """Lazily fetches all pages of a list query."""

    def __init__(self, executor, decoder: ResponseDecoder, logger: Optional[logging.Logger] = None):
        """
        Initialize the driver.

        Args:
            executor: RetryExecutor used for every page
            decoder: Decoder providing continuation cursors
            logger: Logger to use instead of the module logger
        """
        self.executor = executor
        self.decoder = decoder
        self._logger = logger or logging.getLogger(__name__)

    @staticmethod
    def page_limit(per_page_limit: Optional[int], total_limit: Optional[int],
                   produced: int) -> Union[int, str]:
        """Limit to request for the next page."""
        if total_limit is None:
            return "max" if per_page_limit is None else per_page_limit
        remaining = total_limit - produced
        if per_page_limit is None:
            return remaining
        return min(remaining, per_page_limit)

    def run(
        self,
        template: Request,
        per_page_limit: Optional[int] = None,
        total_limit: Optional[int] = None,
        decode: Optional[PageDecoder] = None,
        limit_param: str = "limit",
        max_attempts: Optional[int] = None
    ) -> Iterator[T]:
        """
        Iterate over every result of a paged query.

        The sequence is lazy and not restartable: iterating again issues
        fresh requests. Errors abort the sequence; items already produced
        stay with the caller.

        Args:
            template: Request carrying the query parameters
            per_page_limit: Maximum items per page; None requests ``max``
            total_limit: Maximum items overall; None means unbounded
            decode: Callable turning a page response into its items
            limit_param: Name of the page-size parameter, e.g. ``cmlimit``
            max_attempts: Attempt budget passed to the executor

        Yields:
            Decoded items in server order
        """
        if decode is None:
            raise WikiError("A page decoder is required", ErrorKind.INVALID_ARGUMENT)
        if per_page_limit is not None and per_page_limit < 1:
            raise WikiError("per_page_limit must be positive", ErrorKind.INVALID_ARGUMENT)
        if total_limit is not None and total_limit < 0:
            raise WikiError("total_limit must not be negative", ErrorKind.INVALID_ARGUMENT)
        return self._pages(template, per_page_limit, total_limit, decode, limit_param, max_attempts)

    def _pages(self, template, per_page_limit, total_limit, decode, limit_param, max_attempts):
        produced = 0
        pages = 0
        cursor: Optional[ContinuationCursor] = None

        while total_limit is None or produced < total_limit:
            limit = self.page_limit(per_page_limit, total_limit, produced)
            params = {limit_param: limit}
            if cursor:
                params.update(cursor)
            response = self.executor.execute(template.with_params(**params), max_attempts)
            pages += 1

            for item in decode(response):
                if total_limit is not None and produced >= total_limit:
                    break
                produced += 1
                yield item

            next_cursor = self.decoder.decode_continuation(response.body)
            if not next_cursor:
                break
            if next_cursor == cursor:
                raise WikiError(
                    f"Server repeated continuation cursor {next_cursor}",
                    ErrorKind.PROTOCOL,
                    details={"pages": pages},
                )
            cursor = next_cursor

        self._logger.debug(f"Pagination finished: {produced} item(s) in {pages} page(s)")


__all__ = ["PaginationDriver", "PageDecoder"]
