"""
Helpers around the media store used by the request handlers.

Uploads report failure as ``None`` so each caller can choose its own error
message. Deletions are best-effort: a failure is logged and recorded as an
``OrphanedAsset`` row for ``scripts/reconcile_assets.py`` to retry.
"""

import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from app.exceptions import MediaStoreException
from app.models.orphaned_asset import OrphanedAsset
from app.services.asset_url import AssetUrlError, public_id_from_url
from app.services.media_store import MediaStore, StoredAsset, file_size

logger = logging.getLogger(__name__)


def upload_file(media_store: MediaStore, upload: UploadFile, resource_type: str = "auto") -> Optional[StoredAsset]:
    """
    Upload a request file. Returns None if the file is empty or the upload failed.

    The spooled request file is handed over as-is so large videos are never
    held in memory as a whole.
    """
    if not file_size(upload.file):
        logger.warning("Uploaded file is empty", extra={"upload_filename": upload.filename})
        return None

    try:
        return media_store.upload(upload.file, upload.filename or "upload", resource_type=resource_type)
    except MediaStoreException as e:
        logger.error(
            f"Media upload failed: {e.message}",
            extra={"upload_filename": upload.filename, "resource_type": resource_type, "details": e.details}
        )
        return None


def upload_remote(
    media_store: MediaStore,
    source_url: str,
    public_id: Optional[str] = None,
    resource_type: str = "image"
) -> Optional[StoredAsset]:
    try:
        return media_store.upload_remote(source_url, resource_type=resource_type, public_id=public_id)
    except MediaStoreException as e:
        logger.error(
            f"Remote media upload failed: {e.message}",
            extra={"source_url": source_url, "details": e.details}
        )
        return None


def record_orphan(db: Session, public_id: str, resource_type: str, url: Optional[str], reason: str) -> None:
    db.add(OrphanedAsset(public_id=public_id, resource_type=resource_type, url=url, reason=reason))


def delete_asset(db: Session, media_store: MediaStore, url: Optional[str], resource_type: str = "image") -> bool:
    """
    Delete the asset behind a delivery URL.

    Never raises. On failure an OrphanedAsset row is added to the session;
    the caller's commit persists it.
    """
    if not url:
        return True

    try:
        public_id = public_id_from_url(url)
    except AssetUrlError as e:
        logger.error(
            "Cannot derive public id from asset URL, skipping remote deletion",
            extra={"asset_url": url, "error": str(e)}
        )
        return False

    try:
        if not media_store.delete(public_id, resource_type=resource_type):
            logger.warning(
                "Media host reported asset as not deleted",
                extra={"public_id": public_id, "resource_type": resource_type}
            )
        return True
    except MediaStoreException as e:
        logger.error(
            f"Failed to delete remote asset: {e.message}",
            extra={"public_id": public_id, "resource_type": resource_type, "details": e.details}
        )
        record_orphan(db, public_id, resource_type, url, e.message)
        return False
