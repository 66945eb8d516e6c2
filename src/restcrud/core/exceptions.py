"""
Error Taxonomy

Two families of errors:

Configuration errors (``ConfigurationError``):
    Raised while resolving entity metadata or building field maps. They
    indicate a programming error in the entity/web model pair and are never
    recovered by the library. Repositories resolve everything at
    construction, so these surface at startup.

Request errors (``RequestError``):
    Expected, caller-recoverable conditions of a single operation. Each one
    carries the HTTP status the route layer answers with.

``StorageError`` wraps any other persistence failure and is surfaced as-is.
"""

from starlette import status


class RestCrudError(Exception):
    """Base class for all restcrud errors."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(RestCrudError):
    """Entity or web model declaration cannot be used for CRUD."""


class MetadataError(ConfigurationError):
    """Key or concurrency-token resolution failed."""


class KeyNotFoundError(MetadataError):
    def __init__(self, entity_type: type) -> None:
        super().__init__(f"Key field not found on {entity_type.__qualname__}")
        self.entity_type = entity_type


class AmbiguousKeyError(MetadataError):
    def __init__(self, entity_type: type, candidates: list[str]) -> None:
        super().__init__(
            f"Multiple key fields found on {entity_type.__qualname__}: "
            f"{', '.join(candidates)}"
        )
        self.entity_type = entity_type
        self.candidates = candidates


class ConcurrencyTokenNotFoundError(MetadataError):
    def __init__(self, entity_type: type) -> None:
        super().__init__(
            f"Row version field not found on {entity_type.__qualname__}"
        )
        self.entity_type = entity_type


class AmbiguousConcurrencyTokenError(MetadataError):
    def __init__(self, entity_type: type, candidates: list[str]) -> None:
        super().__init__(
            f"Multiple row version fields found on {entity_type.__qualname__}: "
            f"{', '.join(candidates)}"
        )
        self.entity_type = entity_type
        self.candidates = candidates


class MappingError(ConfigurationError):
    """Two types cannot be mapped onto each other."""


class TypeMismatchError(MappingError):
    def __init__(self, field: str, expected: object, value: object) -> None:
        super().__init__(
            f"Field '{field}' expects {expected!r}, "
            f"got {type(value).__qualname__}"
        )
        self.field = field
        self.expected = expected
        self.value = value


# ---------------------------------------------------------------------------
# Request errors
# ---------------------------------------------------------------------------


class RequestError(RestCrudError):
    """Per-operation failure translated to an HTTP response by the route layer."""

    status_code: int = status.HTTP_400_BAD_REQUEST


class KeyMismatchError(RequestError):
    """Key in the URL differs from the key in the body."""

    def __init__(self, url_key: object, body_key: object) -> None:
        super().__init__(
            f"Key in URL ({url_key!r}) differs from key in body ({body_key!r})"
        )
        self.url_key = url_key
        self.body_key = body_key


class ClientKeyNotAllowedError(RequestError):
    def __init__(self, key: object) -> None:
        super().__init__(f"Client-supplied key {key!r} is not allowed on insert")
        self.key = key


class ConcurrencyTokenMissingError(RequestError):
    status_code = status.HTTP_428_PRECONDITION_REQUIRED

    def __init__(self, field: str) -> None:
        super().__init__(f"Field '{field}' is required to modify this entity")
        self.field = field


class NotFoundError(RequestError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity_type: type, key: object) -> None:
        super().__init__(f"{entity_type.__name__} {key!r} does not exist")
        self.entity_type = entity_type
        self.key = key


class ConcurrencyConflictError(RequestError):
    """The stored row version no longer matches the one sent by the caller."""

    status_code = status.HTTP_409_CONFLICT


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------


class StorageError(RestCrudError):
    """Generic persistence failure (constraint violation, connection loss, ...)."""
