"""
Cloudinary media store.

Talks to the Cloudinary upload API directly over HTTP. Requests are signed
with the account's API secret as described in Cloudinary's authentication
docs: the request parameters (minus ``file``, ``api_key`` and
``resource_type``) are sorted, joined as ``key=value`` pairs with ``&``,
suffixed with the secret and SHA-1 hashed.
"""

import hashlib
import logging
import time
from typing import Any, BinaryIO, Dict, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

from app.config import settings
from app.exceptions import MediaStoreException
from .base import MediaStore, StoredAsset, file_size


logger = logging.getLogger(__name__)

UNSIGNED_PARAMS = {"file", "api_key", "resource_type", "cloud_name"}


def sign_params(params: Dict[str, Any], api_secret: str) -> str:
    """Compute the Cloudinary request signature for ``params``."""
    to_sign = "&".join(
        f"{key}={params[key]}"
        for key in sorted(params)
        if key not in UNSIGNED_PARAMS and params[key] not in (None, "")
    )
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


class CloudinaryMediaStore(MediaStore):
    """Cloudinary-backed implementation of the MediaStore interface."""

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.Client] = None
    ):
        self.cloud_name = cloud_name or settings.cloudinary_cloud_name
        self.api_key = api_key or settings.cloudinary_api_key
        self.api_secret = api_secret or settings.cloudinary_api_secret
        self.base_url = (base_url or settings.cloudinary_api_base_url).rstrip("/")

        self.client = client or httpx.Client(timeout=settings.media_upload_timeout_seconds)

        logger.info(
            "Initialized Cloudinary media store",
            extra={
                "cloud_name": self.cloud_name,
                "has_api_secret": bool(self.api_secret),
                "timeout_seconds": settings.media_upload_timeout_seconds
            }
        )

    def _endpoint(self, resource_type: str, action: str) -> str:
        return f"{self.base_url}/{self.cloud_name}/{resource_type}/{action}"

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {key: value for key, value in params.items() if value not in (None, "")}
        params["timestamp"] = int(time.time())
        params["signature"] = sign_params(params, self.api_secret)
        params["api_key"] = self.api_key
        return params

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception(_is_retryable),
        reraise=True
    )
    def _post(self, url: str, data: Dict[str, Any], files: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        # Re-signed on every attempt so the timestamp stays fresh; file parts are rewound
        for _, fileobj in (files or {}).values():
            fileobj.seek(0)
        response = self.client.post(url, data=self._signed(data), files=files)
        response.raise_for_status()
        return response.json()

    def _call(self, url: str, data: Dict[str, Any], files: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            return self._post(url, data, files)
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            error_detail = e.response.text
            logger.error(
                f"Cloudinary API error: {status_code}",
                extra={"status_code": status_code, "error_detail": error_detail[:500], "url": url}
            )
            raise MediaStoreException(
                f"Media host returned HTTP {status_code}",
                details={"status_code": status_code, "error": error_detail[:500]}
            )
        except httpx.TransportError as e:
            logger.error(
                "Cloudinary connection error",
                extra={"error": str(e), "error_type": type(e).__name__, "url": url}
            )
            raise MediaStoreException(
                "Failed to reach the media host",
                details={"error": str(e)}
            )
        except ValueError as e:
            logger.error("Cloudinary returned a non-JSON body", extra={"url": url})
            raise MediaStoreException("Media host returned an invalid response", details={"error": str(e)})

    def _to_asset(self, body: Dict[str, Any], resource_type: str) -> StoredAsset:
        url = body.get("secure_url") or body.get("url")
        if not url:
            raise MediaStoreException(
                "Media host response did not include an asset URL",
                details={"response_keys": list(body.keys())}
            )
        duration = body.get("duration")
        return StoredAsset(
            url=url,
            public_id=body.get("public_id", ""),
            resource_type=body.get("resource_type", resource_type),
            duration=float(duration) if duration is not None else None
        )

    def upload(
        self,
        file: BinaryIO,
        filename: str,
        resource_type: str = "auto",
        public_id: Optional[str] = None
    ) -> StoredAsset:
        size = file_size(file)
        if not size:
            raise MediaStoreException("Refusing to upload an empty file", details={"filename": filename})

        logger.info(
            "Uploading file to Cloudinary",
            extra={"upload_filename": filename, "resource_type": resource_type, "size_bytes": size}
        )
        start_time = time.time()

        # httpx streams file objects in chunks
        body = self._call(
            self._endpoint(resource_type, "upload"),
            data={"public_id": public_id},
            files={"file": (filename, file)}
        )
        asset = self._to_asset(body, resource_type)

        logger.info(
            "Uploaded file to Cloudinary",
            extra={
                "public_id": asset.public_id,
                "resource_type": asset.resource_type,
                "upload_time_seconds": round(time.time() - start_time, 2)
            }
        )
        return asset

    def upload_remote(
        self,
        source_url: str,
        resource_type: str = "image",
        public_id: Optional[str] = None
    ) -> StoredAsset:
        logger.info(
            "Uploading remote file to Cloudinary",
            extra={"source_url": source_url, "resource_type": resource_type, "public_id": public_id}
        )
        body = self._call(
            self._endpoint(resource_type, "upload"),
            data={"file": source_url, "public_id": public_id}
        )
        return self._to_asset(body, resource_type)

    def delete(self, public_id: str, resource_type: str = "image") -> bool:
        body = self._call(
            self._endpoint(resource_type, "destroy"),
            data={"public_id": public_id, "invalidate": "true"}
        )
        result = body.get("result")
        if result == "ok":
            logger.info(
                "Deleted asset from Cloudinary",
                extra={"public_id": public_id, "resource_type": resource_type}
            )
            return True

        logger.warning(
            f"Cloudinary did not delete asset: {result}",
            extra={"public_id": public_id, "resource_type": resource_type}
        )
        return False
