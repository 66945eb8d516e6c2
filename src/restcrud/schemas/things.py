"""
Thing Schemas

Pydantic web model for the Thing REST resource. A single model serves as
request and response body, so every field is optional: the CRUD layer maps
whatever the client sent onto the entity by field name.
"""

from pydantic import BaseModel, Field

from restcrud.schemas.base import RowVersionToken


class ThingWebModel(BaseModel):
    """Transfer object for Thing (request and response body)."""

    id: int | None = Field(default=None, description="Thing key")
    name: str | None = Field(
        default=None,
        max_length=256,
        description="Thing name (max 256 chars)",
    )
    description: str | None = Field(default=None, description="Free text")
    row_version: RowVersionToken | None = Field(
        default=None,
        description="Concurrency token (base64); send back unchanged on update",
    )
