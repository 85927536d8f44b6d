"""
Operations built on the request core.

Chunked uploads and a small set of page operations.
"""

from .upload import ChunkedUploadSession, UploadState, DEFAULT_CHUNK_SIZE
from .pages import PageInfo, normalize_title, get_page_info, get_category_members, edit, upload_file

__all__ = [
    "ChunkedUploadSession",
    "UploadState",
    "DEFAULT_CHUNK_SIZE",
    "PageInfo",
    "normalize_title",
    "get_page_info",
    "get_category_members",
    "edit",
    "upload_file",
]
