"""
Common base models and utilities.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

# Annotated type for ObjectId fields
ObjectIdField = Annotated[ObjectId | None, Field(default=None, alias="_id")]


def parse_object_id(value: Any) -> ObjectId | None:
    """Return an ObjectId for a valid id string, else None."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class MongoBaseModel(BaseModel):
    """
    Base model for MongoDB documents.

    Documents are stored with camelCase keys; attributes stay snake_case.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    id: ObjectIdField = None

    @field_validator("id", mode="before")
    @classmethod
    def validate_object_id(cls, v: Any) -> ObjectId | None:
        if v is None:
            return None
        oid = parse_object_id(v)
        if oid is None:
            raise ValueError("Invalid ObjectId")
        return oid

    @field_serializer("id")
    def serialize_object_id(self, v: ObjectId | None) -> str | None:
        return str(v) if v else None

    def to_mongo(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert model to MongoDB document format."""
        data = _plain(self.model_dump(by_alias=True, exclude_none=exclude_none))
        if data.get("_id") is None:
            data.pop("_id", None)
        else:
            data["_id"] = self.id
        return data

    def to_api(self) -> dict[str, Any]:
        """JSON-safe dict with wire field names."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_mongo(cls, data: dict[str, Any]) -> "MongoBaseModel":
        """Create model from MongoDB document."""
        if data is None:
            raise ValueError("Cannot create model from None")
        return cls.model_validate(data)


def _plain(value: Any) -> Any:
    """Replace enum members with their values, recursively."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from MongoDB as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
