"""Base media store interface."""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, Optional


def file_size(file: BinaryIO) -> int:
    """Size of a seekable file object, leaving it rewound."""
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)
    return size


@dataclass
class StoredAsset:
    """Result of a successful upload to the media host."""

    url: str
    public_id: str
    resource_type: str
    duration: Optional[float] = None


class MediaStore(ABC):
    """Abstract base class for media hosts."""

    @abstractmethod
    def upload(
        self,
        file: BinaryIO,
        filename: str,
        resource_type: str = "auto",
        public_id: Optional[str] = None
    ) -> StoredAsset:
        """
        Upload a file.

        Args:
            file: Readable, seekable file object; streamed, not read into memory
            filename: Original file name (used for the multipart part)
            resource_type: "image", "video" or "auto"
            public_id: Identifier to store under (host-generated if omitted)

        Returns:
            StoredAsset with the public delivery URL

        Raises:
            MediaStoreException: If the host rejects the upload or is unreachable
        """
        pass

    @abstractmethod
    def upload_remote(
        self,
        source_url: str,
        resource_type: str = "image",
        public_id: Optional[str] = None
    ) -> StoredAsset:
        """
        Ask the host to fetch and store the file at ``source_url``.

        Raises:
            MediaStoreException: If the host rejects the upload or is unreachable
        """
        pass

    @abstractmethod
    def delete(self, public_id: str, resource_type: str = "image") -> bool:
        """
        Delete a stored asset.

        Returns:
            True if the asset was deleted, False if the host did not know it

        Raises:
            MediaStoreException: If the host is unreachable or returns an error
        """
        pass
