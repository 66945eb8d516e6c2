"""
CRUD Controller

Binds a CrudRepository to REST routes:

    GET    /        list all
    GET    /{key}   get one (404 if missing)
    POST   /        insert (201)
    PUT    /{key}   update
    DELETE /{key}   delete, optional body carrying the row version (204)

Request errors raised by the repository are answered with the HTTP status
they carry. Configuration and storage errors are left to the server (500).
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Generic

from fastapi import APIRouter, Body, HTTPException, status

from restcrud.core.exceptions import RequestError
from restcrud.repositories.base import CrudRepository, KeyType, ModelType, SchemaType


@contextmanager
def translate_request_errors() -> Iterator[None]:
    """Re-raise RequestError as HTTPException."""
    try:
        yield
    except RequestError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e


class CrudController(Generic[ModelType, SchemaType, KeyType]):
    """
    Route-bound front of a CrudRepository.

    Usage:
        controller = CrudController(thing_repository, key_type=int)
        app.include_router(controller.router, prefix="/api/v1/things")
    """

    def __init__(
        self,
        repository: CrudRepository[ModelType, SchemaType, KeyType],
        key_type: type[Any] = int,
    ):
        self.repository = repository
        self.key_type = key_type
        self.router = APIRouter()

        self.register_read_routes(self.router)
        self.register_write_routes(self.router)

    @property
    def resource_name(self) -> str:
        return self.repository.model.__name__

    def register_read_routes(self, router: APIRouter) -> None:
        repository = self.repository
        schema = repository.schema
        key_type = self.key_type
        resource_name = self.resource_name

        @router.get("/", response_model=list[schema])
        async def get_all():
            """List all records."""
            return await repository.list_all()

        @router.get("/{key}", response_model=schema)
        async def get(key: key_type):
            """Retrieve a single record by key."""
            result = await repository.get(key)
            if result is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"{resource_name} not found",
                )
            return result

    def register_write_routes(self, router: APIRouter) -> None:
        repository = self.repository
        schema = repository.schema
        key_type = self.key_type

        @router.post("/", response_model=schema, status_code=status.HTTP_201_CREATED)
        async def insert(body: schema):
            """Create a record; the response carries its key and row version."""
            with translate_request_errors():
                return await repository.insert(body)

        @router.put("/{key}", response_model=schema)
        async def update(key: key_type, body: schema):
            """
            Update the fields sent in the body.

            The body must repeat the key and, for versioned resources, the
            row version last read. A stale row version answers 409.
            """
            with translate_request_errors():
                return await repository.update(key, body)

        @router.delete("/{key}", status_code=status.HTTP_204_NO_CONTENT)
        async def delete(key: key_type, body: schema | None = Body(default=None)):
            """Delete a record, guarded by the row version when a body is sent."""
            with translate_request_errors():
                await repository.delete(key, body)
