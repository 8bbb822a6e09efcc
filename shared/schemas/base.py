"""
Base schema conventions

Documents and API payloads use camelCase keys (taskId, createdAt, ...);
Python code uses snake_case attributes.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_document(self) -> dict:
        """JSON-compatible dict keyed by alias, as stored and returned"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
