"""
CRUD Session

Thin persistence-session abstraction over ``AsyncSession``, exposing the
entity-state operations the CRUD repository is written against:
add, attach-as-unchanged, mark-field-modified, mark-deleted and commit.

Commit failures are translated:
    - ``StaleDataError`` (zero rows matched by a versioned UPDATE/DELETE)
      -> ConcurrencyConflictError
    - any other ``SQLAlchemyError`` -> StorageError
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

from sqlalchemy import Select, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import make_transient_to_detached
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from restcrud.core.exceptions import ConcurrencyConflictError, StorageError
from restcrud.services.mapping import Projection

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT")

# async_sessionmaker instances satisfy this, as does any zero-arg callable
SessionFactory = Callable[[], AsyncSession]


@dataclass(frozen=True)
class EntityPatch:
    """
    Field-level update of one persisted entity.

    Attributes:
        key_field: Name of the key field.
        key: Key value of the row to update.
        values: ``{field: new value}`` for every field to write. Values equal
            to None or a default are written too.
        token_field: Name of the concurrency field, if the entity has one.
        token: Row version the caller last read. The write only succeeds if
            the stored row still carries it.
    """

    key_field: str
    key: Any
    values: dict[str, Any] = field(default_factory=dict)
    token_field: str | None = None
    token: bytes | None = None


class CrudSession:
    """
    Unit of work for a single CRUD operation.

    Usage::

        async with CrudSession.open(session_factory) as session:
            session.add(entity)
            await session.commit()

    The underlying ``AsyncSession`` is closed on every exit path; closing
    rolls back anything left uncommitted (including after cancellation).
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @classmethod
    @asynccontextmanager
    async def open(cls, session_factory: SessionFactory) -> AsyncIterator[CrudSession]:
        session = cls(session_factory())
        try:
            yield session
        finally:
            await session.close()

    @property
    def session(self) -> AsyncSession:
        return self._session

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self,
        entity_type: type[EntityT],
        projection: Projection[EntityT, Any],
    ) -> Select[Any]:
        """
        SELECT of the projected columns of ``entity_type``.

        Rows are shaped into transfer objects without loading entities.
        """
        return select(*projection.columns).select_from(entity_type)

    async def execute(self, statement: Any) -> Result[Any]:
        return await self._session.execute(statement)

    async def get(
        self,
        entity_type: type[EntityT],
        key: Any,
        *,
        reload: bool = False,
    ) -> EntityT | None:
        """Load an entity by key. ``reload`` bypasses the identity map."""
        return await self._session.get(entity_type, key, populate_existing=reload)

    async def refresh(self, entity: Any) -> None:
        await self._session.refresh(entity)

    # ------------------------------------------------------------------
    # Entity state
    # ------------------------------------------------------------------

    def add(self, entity: Any) -> None:
        """Register a new entity for INSERT."""
        self._session.add(entity)

    def attach_unchanged(self, entity: Any) -> None:
        """
        Register a transient entity as an existing, unmodified row.

        Attributes already set become its committed state; unset attributes
        are treated as unloaded. No SELECT is issued.
        """
        make_transient_to_detached(entity)
        self._session.add(entity)

    def mark_field_modified(self, entity: Any, field_name: str) -> None:
        """Force ``field_name`` into the next UPDATE, even if unchanged."""
        flag_modified(entity, field_name)

    async def mark_deleted(self, entity: Any) -> None:
        """Register an entity for DELETE, attaching it first if transient."""
        if sa_inspect(entity).transient:
            self.attach_unchanged(entity)
        await self._session.delete(entity)

    def apply_patch(self, entity_type: type[EntityT], patch: EntityPatch) -> EntityT:
        """
        Stage ``patch`` as an UPDATE without reading the row first.

        The entity is attached carrying only its key and row version, then
        every patched field is assigned and flagged modified. The resulting
        statement is ``UPDATE ... SET <patched fields> WHERE key = :key``
        (``AND row_version = :token`` for versioned entities).
        """
        entity = entity_type()
        setattr(entity, patch.key_field, patch.key)
        if patch.token_field is not None:
            setattr(entity, patch.token_field, patch.token)

        self.attach_unchanged(entity)

        for name, value in patch.values.items():
            setattr(entity, name, value)
            self.mark_field_modified(entity, name)
        return entity

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def commit(self) -> None:
        """
        Flush and commit pending changes atomically.

        Raises:
            ConcurrencyConflictError: A versioned write matched no row.
            StorageError: Any other persistence failure.
        """
        try:
            await self._session.commit()
        except StaleDataError as e:
            await self._session.rollback()
            raise ConcurrencyConflictError(str(e)) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.error("Commit failed: %s", e)
            raise StorageError(str(e)) from e

    async def close(self) -> None:
        await self._session.close()
