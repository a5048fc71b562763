"""Document fetchers and the content type registry."""

from .base import Document, DocumentFetcher, StaticDocumentFetcher
from .registry import FetcherRegistry, build_registry
from .table import TableDocumentFetcher

__all__ = [
    "Document",
    "DocumentFetcher",
    "StaticDocumentFetcher",
    "TableDocumentFetcher",
    "FetcherRegistry",
    "build_registry",
]
