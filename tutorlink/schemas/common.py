"""Response envelope and shared schema helpers."""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys.

    Accepts both camelCase and snake_case on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ApiResponse(BaseModel, Generic[T]):
    """Envelope returned by every endpoint."""

    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
