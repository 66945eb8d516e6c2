"""
Thing Model

Sample entity served by the bundled REST API. Demonstrates the conventions
the CRUD layer relies on: a primary key and a row-version concurrency token.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from restcrud.models.base import Base, RowVersionMixin


class Thing(Base, RowVersionMixin):
    """
    Thing entity with optimistic concurrency.

    Attributes:
        id: Primary key (database-generated).
        name: Display name (max 256 chars), required.
        description: Free text, optional.
        row_version: Concurrency token (from RowVersionMixin).
    """

    __tablename__ = "things"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(256))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Thing(id={self.id}, name='{self.name}')>"
