from typing import Optional, Dict, Any

from fastapi import HTTPException, status


class AppException(Exception):
    """Base class for all application exceptions."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or 'UNKNOWN_ERROR'
        self.details = details or {}


class ValidationException(AppException):
    """Exception raised when input validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code='VALIDATION_ERROR', details=details)


class AuthenticationException(AppException):
    """Exception raised when a request carries no valid session."""

    def __init__(self, message: str = "Unauthorized request", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code='AUTHENTICATION_ERROR', details=details)


class AuthorizationException(AppException):
    """Exception raised when the caller may not act on a resource."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code='AUTHORIZATION_ERROR', details=details)


class NotFoundException(AppException):
    """Exception raised when a requested record does not exist."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code='NOT_FOUND', details=details)


class ConflictException(AppException):
    """Exception raised when a record would violate a uniqueness rule."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code='CONFLICT', details=details)


class MediaUploadException(AppException):
    """Exception raised when a file could not be stored on the media host."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code='MEDIA_UPLOAD_FAILED', details=details)


class MediaStoreException(AppException):
    """Exception raised for media host transport or API errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code='MEDIA_STORE_ERROR', details=details)


class ImageProcessingException(AppException):
    """Exception raised when no frame image could be fetched."""

    def __init__(self, message: str = "Failed to process images", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code='IMAGE_PROCESSING_FAILED', details=details)


class MetadataGenerationException(AppException):
    """Exception raised when the inference provider call or its parsing fails."""

    def __init__(
        self,
        message: str = "Failed to generate video metadata",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code='METADATA_GENERATION_FAILED', details=details)


STATUS_CODE_MAP = {
    'VALIDATION_ERROR': status.HTTP_400_BAD_REQUEST,
    'AUTHENTICATION_ERROR': status.HTTP_401_UNAUTHORIZED,
    'AUTHORIZATION_ERROR': status.HTTP_403_FORBIDDEN,
    'NOT_FOUND': status.HTTP_404_NOT_FOUND,
    'CONFLICT': status.HTTP_409_CONFLICT,
    'MEDIA_UPLOAD_FAILED': status.HTTP_400_BAD_REQUEST,
    'IMAGE_PROCESSING_FAILED': status.HTTP_400_BAD_REQUEST,
    'MEDIA_STORE_ERROR': status.HTTP_502_BAD_GATEWAY,
    'METADATA_GENERATION_FAILED': status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_envelope(status_code: int, message: str, errors: Optional[list] = None) -> Dict[str, Any]:
    """Build the error body shared by every failed response."""
    return {
        "statusCode": status_code,
        "message": message,
        "success": False,
        "errors": errors or [],
    }


def to_http_exception(exc: AppException) -> HTTPException:
    """Convert AppException to HTTPException for FastAPI."""
    status_code = STATUS_CODE_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(
        status_code=status_code,
        detail=error_envelope(status_code, exc.message)
    )
