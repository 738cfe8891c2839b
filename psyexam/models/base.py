"""Shared pydantic base model."""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Snake-case attributes, camelCase on the wire and in stored documents."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)
