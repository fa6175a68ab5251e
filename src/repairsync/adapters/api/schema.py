"""Pydantic models describing the Repair Minder API envelope."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

T = TypeVar("T")


class RepairMinderBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ApiResponse(RepairMinderBaseModel, Generic[T]):
    """Standard ``{success, data, error, message}`` wrapper."""

    success: bool
    data: T | None = None
    error: str | None = None
    message: str | None = None


class ErrorBody(RepairMinderBaseModel):
    """Lenient view of an error body; every field is optional."""

    success: bool | None = None
    error: str | None = None
    message: str | None = None

    @property
    def detail(self) -> str | None:
        return self.error or self.message


class PaginationMeta(RepairMinderBaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool = False

    @model_validator(mode="before")
    @classmethod
    def _derive_has_more(cls, value: object) -> object:
        if isinstance(value, dict) and "has_more" not in value:
            data = dict(value)
            try:
                data["has_more"] = int(data["offset"]) + int(data["limit"]) < int(data["total"])
            except (KeyError, TypeError, ValueError):
                return value
            return data
        return value


class PaginatedResponse(RepairMinderBaseModel, Generic[T]):
    items: T
    pagination: PaginationMeta


class TokenPair(RepairMinderBaseModel):
    access_token: str = Field(alias="token")
    refresh_token: str
