"""
Base schemas shared by all models.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """
    Base for request/response schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class CamelSchema(BaseModel):
    """
    Base for documents persisted in the key-value store.

    Fields are snake_case in Python and camelCase on the wire
    (createdAt, manualMapping, lastUpdated...), so snapshots written
    by older clients keep loading.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True
    )

    def to_json_dict(self) -> dict:
        """Dump with camelCase keys and ISO timestamps."""
        return self.model_dump(by_alias=True, mode="json")
