from .cover_image import CoverImageResolver, is_likely_logo, select_candidate
from .object_store import BaseObjectStore, S3ObjectStore

__all__ = ["CoverImageResolver", "is_likely_logo", "select_candidate", "BaseObjectStore", "S3ObjectStore"]
