"""Models package - re-exports all models for convenient imports."""

from restcrud.models.base import Base, RowVersionMixin, new_row_version
from restcrud.models.thing import Thing

__all__ = [
    "Base",
    "RowVersionMixin",
    "new_row_version",
    "Thing",
]
