"""Transport layer for the MediaWiki client."""

from .http import HttpTransport

__all__ = ["HttpTransport"]
