"""
Media store abstraction.

The API layer asks for a store through ``get_media_store`` so tests can
swap in an in-memory implementation with a dependency override.
"""

from typing import Optional

from .base import MediaStore, StoredAsset, file_size
from .cloudinary_store import CloudinaryMediaStore


_store: Optional[MediaStore] = None


def get_media_store() -> MediaStore:
    """Return the process-wide media store, creating it on first use."""
    global _store

    if _store is None:
        _store = CloudinaryMediaStore()
    return _store


__all__ = [
    "MediaStore",
    "StoredAsset",
    "file_size",
    "CloudinaryMediaStore",
    "get_media_store",
]
