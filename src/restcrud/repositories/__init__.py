"""Repositories package."""

from restcrud.repositories.base import CrudRepository
from restcrud.repositories.session import CrudSession, EntityPatch, SessionFactory

__all__ = [
    "CrudRepository",
    "CrudSession",
    "EntityPatch",
    "SessionFactory",
]
