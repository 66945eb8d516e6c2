"""
SQLAlchemy Base Models

Provides the declarative base and reusable mixins for all ORM models.
"""

import os
from typing import Any

from sqlalchemy import LargeBinary
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

ROW_VERSION_SIZE = 16  # bytes


def new_row_version(current: bytes | None) -> bytes:
    """Version generator: a fresh random token on every INSERT and UPDATE."""
    return os.urandom(ROW_VERSION_SIZE)


class Base(DeclarativeBase):
    """Declarative base class for all SQLAlchemy ORM models."""

    pass


class RowVersionMixin:
    """
    Mixin that adds an optimistic concurrency token.

    Behavior:
        - row_version: Opaque bytes, regenerated on every INSERT and UPDATE.
        - UPDATE and DELETE statements include ``WHERE row_version = :old``;
          zero matched rows raise ``StaleDataError`` at flush.

    Note:
        Registered as the mapper's ``version_id_col``, which is also how
        the metadata resolver recognises the concurrency field.
    """

    row_version: Mapped[bytes] = mapped_column(
        LargeBinary(ROW_VERSION_SIZE),
        nullable=False,
    )

    @declared_attr.directive
    def __mapper_args__(cls) -> dict[str, Any]:
        return {
            "version_id_col": cls.row_version,
            "version_id_generator": new_row_version,
        }
