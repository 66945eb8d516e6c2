"""
CRUD Repository

Generic executor for the five REST operations (list, get, insert, update,
delete) over an entity/web model pair. Each operation opens its own
session, runs, commits and releases the session on every exit path.
"""

import logging
from typing import Generic, NoReturn, TypeVar

from pydantic import BaseModel
from sqlalchemy import select

from restcrud.core.config import settings
from restcrud.core.exceptions import (
    ClientKeyNotAllowedError,
    ConcurrencyConflictError,
    ConcurrencyTokenMissingError,
    ConfigurationError,
    KeyMismatchError,
    MetadataError,
    NotFoundError,
)
from restcrud.models.base import Base
from restcrud.repositories.session import CrudSession, EntityPatch, SessionFactory
from restcrud.services.fields import get_mapper
from restcrud.services.mapping import build_projection, map_fields
from restcrud.services.metadata import (
    build_key_predicate,
    find_concurrency_field,
    find_key_field,
)

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)
SchemaType = TypeVar("SchemaType", bound=BaseModel)
KeyType = TypeVar("KeyType")


class CrudRepository(Generic[ModelType, SchemaType, KeyType]):
    """
    Generic repository providing REST CRUD over a web model.

    Entity metadata (key field, row-version field) and the field maps in
    both directions are resolved at construction, so a misconfigured pair
    fails at startup rather than on the first request.

    Usage:
        things = CrudRepository(Thing, ThingWebModel, session_factory)
        created = await things.insert(ThingWebModel(name="TEXT1"))
        await things.update(created.id, created.model_copy(update={"name": "TEXT2"}))
    """

    def __init__(
        self,
        model: type[ModelType],
        schema: type[SchemaType],
        session_factory: SessionFactory,
        *,
        allow_client_keys: bool | None = None,
    ):
        mapper = get_mapper(model)
        if mapper is None:
            raise ConfigurationError(f"{model.__qualname__} is not a mapped entity")

        self.model = model
        self.schema = schema
        self.session_factory = session_factory
        self.allow_client_keys = (
            settings.ALLOW_CLIENT_KEYS if allow_client_keys is None else allow_client_keys
        )

        self.key_field = find_key_field(model)
        self.token_field = find_concurrency_field(model)
        if self.token_field is not None:
            version_col = mapper.version_id_col
            if (
                version_col is None
                or mapper.get_property_by_column(version_col).key != self.token_field
            ):
                raise MetadataError(
                    f"{model.__qualname__}.{self.token_field} looks like a row version "
                    "but is not the mapper's version_id_col"
                )

        self.projection = build_projection(model, schema)

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def list_all(self) -> list[SchemaType]:
        """Project every row, in the order the database yields them."""
        async with CrudSession.open(self.session_factory) as session:
            result = await session.execute(session.query(self.model, self.projection))
            return [self.projection.from_row(row) for row in result]

    async def get(self, key: KeyType) -> SchemaType | None:
        """Get one projected row by key. Returns None if not found."""
        async with CrudSession.open(self.session_factory) as session:
            stmt = session.query(self.model, self.projection).where(
                build_key_predicate(self.model, key)
            )
            row = (await session.execute(stmt)).one_or_none()
            return None if row is None else self.projection.from_row(row)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def insert(self, obj_in: SchemaType) -> SchemaType:
        """
        Create a new record.

        Args:
            obj_in: Web model; every field shared with the entity is mapped.

        Returns:
            The web model of the stored row, with database-generated key
            and row version populated.

        Raises:
            ClientKeyNotAllowedError: obj_in carries a key and client keys
                are disabled.
        """
        entity = self.model()
        map_fields(obj_in, entity)

        key = getattr(entity, self.key_field)
        if key is not None and not self.allow_client_keys:
            raise ClientKeyNotAllowedError(key)
        if self.token_field is not None:
            setattr(entity, self.token_field, None)  # Assigned by the version generator

        async with CrudSession.open(self.session_factory) as session:
            session.add(entity)
            await session.commit()
            await session.refresh(entity)  # Load DB-generated fields

            logger.info(
                "Inserted %s %r", self.model.__name__, getattr(entity, self.key_field)
            )
            return self.projection(entity)

    async def update(self, key: KeyType, obj_in: SchemaType) -> SchemaType:
        """
        Update a record with the fields the caller sent.

        The row is not read before writing: an entity carrying only the key
        and the caller's row version is attached as unchanged, then each
        sent field is written and flagged modified. The UPDATE therefore
        covers exactly those fields (including ones set to None) and, for
        versioned entities, only matches if the row version is unchanged.
        When only the key and row version are sent no UPDATE is issued; the
        row version is then checked against the reloaded row.

        Args:
            key: Key from the URL.
            obj_in: Web model. Must carry the same key and, for versioned
                entities, the row version last read.

        Returns:
            The web model of the updated row.

        Raises:
            KeyMismatchError: obj_in's key differs from key. Raised before
                any storage access.
            ConcurrencyTokenMissingError: Versioned entity without a row
                version in obj_in.
            ConcurrencyConflictError: The row was modified since it was read.
            NotFoundError: No row with this key.
        """
        staged = self.model()
        written = map_fields(obj_in, staged, only_set=True)

        body_key = getattr(staged, self.key_field)
        if body_key != key:
            raise KeyMismatchError(key, body_key)

        token = None
        if self.token_field is not None:
            token = getattr(staged, self.token_field)
            if token is None:
                raise ConcurrencyTokenMissingError(self.token_field)

        patch = EntityPatch(
            key_field=self.key_field,
            key=key,
            values={
                name: getattr(staged, name)
                for name in sorted(written)
                if name not in (self.key_field, self.token_field)
            },
            token_field=self.token_field,
            token=token,
        )

        async with CrudSession.open(self.session_factory) as session:
            session.apply_patch(self.model, patch)
            try:
                await session.commit()
            except ConcurrencyConflictError as e:
                await self._raise_for_stale_write(session, key, e)

            entity = await session.get(self.model, key, reload=True)
            if entity is None:
                raise NotFoundError(self.model, key)
            if (
                not patch.values
                and token is not None
                and getattr(entity, self.token_field) != token
            ):
                # No UPDATE issued; compare with the stored version
                logger.warning(
                    "Concurrency conflict on %s %r: row version is stale",
                    self.model.__name__,
                    key,
                )
                raise ConcurrencyConflictError(
                    f"{self.model.__name__} {key!r} was modified since it was read"
                )

            logger.info(
                "Updated %s %r (%s)",
                self.model.__name__,
                key,
                ", ".join(patch.values) or "no fields",
            )
            return self.projection(entity)

    async def delete(self, key: KeyType, obj_in: SchemaType | None = None) -> None:
        """
        Delete a record.

        Args:
            key: Key from the URL.
            obj_in: Optional web model. When given, its key must match and
                its row version (if any) guards the delete.

        Raises:
            KeyMismatchError: obj_in's key differs from key.
            ConcurrencyConflictError: The row was modified since it was read.
            NotFoundError: No row with this key.
        """
        entity = self.model()
        if obj_in is None:
            setattr(entity, self.key_field, key)
        else:
            map_fields(obj_in, entity)
            body_key = getattr(entity, self.key_field)
            if body_key != key:
                raise KeyMismatchError(key, body_key)

        token = getattr(entity, self.token_field) if self.token_field else None

        async with CrudSession.open(self.session_factory) as session:
            if token is None:
                # No row version to guard on: delete whatever is stored
                target = await session.get(self.model, key)
                if target is None:
                    raise NotFoundError(self.model, key)
            else:
                target = entity

            await session.mark_deleted(target)
            try:
                await session.commit()
            except ConcurrencyConflictError as e:
                await self._raise_for_stale_write(session, key, e)

            logger.info("Deleted %s %r", self.model.__name__, key)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _exists(self, session: CrudSession, key: KeyType) -> bool:
        key_column = getattr(self.model, self.key_field)
        stmt = select(key_column).where(build_key_predicate(self.model, key))
        return (await session.execute(stmt)).first() is not None

    async def _raise_for_stale_write(
        self,
        session: CrudSession,
        key: KeyType,
        error: ConcurrencyConflictError,
    ) -> NoReturn:
        """A write matched no row: either it is gone or its version moved on."""
        if await self._exists(session, key):
            logger.warning(
                "Concurrency conflict on %s %r: row version is stale",
                self.model.__name__,
                key,
            )
            raise error
        logger.warning("%s %r does not exist", self.model.__name__, key)
        raise NotFoundError(self.model, key) from error
