from .jina import JinaReader

from .base import BaseReader, FetchedContent

__all__ = ["JinaReader", "BaseReader", "FetchedContent"]
