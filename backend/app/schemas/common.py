"""
Response envelope shared by every endpoint.

Successful responses are wrapped as
``{"statusCode": ..., "data": ..., "message": ..., "success": true}``.
Error bodies are built by ``app.exceptions.error_envelope``.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[T]):
    status_code: int
    data: T
    message: str
    success: bool = True


def api_response(status_code: int, data, message: str) -> ApiResponse:
    return ApiResponse(status_code=status_code, data=data, message=message, success=status_code < 400)
