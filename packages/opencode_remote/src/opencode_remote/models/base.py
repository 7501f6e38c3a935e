"""Base model for server payloads."""

from pydantic import BaseModel, ConfigDict


class ApiModel(BaseModel):
    """Base wire model: accepts field names or aliases and ignores unknown keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
