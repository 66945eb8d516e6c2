"""
Entity Metadata Resolver

Locates the key field and the optimistic-concurrency field of an entity
type. Results are cached per type.

Key resolution:
    1. Fields carrying the key annotation (primary-key column, ``Key`` marker).
    2. Otherwise fields named ``id`` or ``<type name>id``, compared
       case-insensitively with underscores ignored (``Id``, ``thing_id``).

Concurrency field resolution:
    1. Fields carrying the concurrency annotation (``version_id_col``,
       ``ConcurrencyToken`` marker).
    2. Otherwise ``bytes`` fields named exactly ``row_version``, ``timestamp``,
       ``RowVersion`` or ``Timestamp``.
"""

from __future__ import annotations

import types
from functools import lru_cache
from typing import Any, Union, get_args, get_origin

from sqlalchemy.sql.elements import ColumnElement

from restcrud.core.exceptions import (
    AmbiguousConcurrencyTokenError,
    AmbiguousKeyError,
    ConcurrencyTokenNotFoundError,
    KeyNotFoundError,
)
from restcrud.services.fields import describe_fields, strip_annotated

KEY_FIELD_NAME = "id"
ROW_VERSION_FIELD_NAMES = ("row_version", "timestamp", "RowVersion", "Timestamp")


def _normalize(name: str) -> str:
    return name.replace("_", "").lower()


def _is_bytes(annotation: Any) -> bool:
    annotation, _ = strip_annotated(annotation)
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        return len(args) == 1 and _is_bytes(args[0])
    return isinstance(annotation, type) and issubclass(annotation, bytes)


@lru_cache(maxsize=None)
def find_key_field(entity_type: type) -> str:
    """
    Return the name of the key field of ``entity_type``.

    Raises:
        AmbiguousKeyError: More than one candidate in the deciding pass.
        KeyNotFoundError: Neither pass yields a candidate.
    """
    fields = describe_fields(entity_type)
    candidates = [spec.name for spec in fields.values() if spec.is_key]
    if not candidates:
        conventional = {KEY_FIELD_NAME, _normalize(entity_type.__name__) + KEY_FIELD_NAME}
        candidates = [name for name in fields if _normalize(name) in conventional]

    if len(candidates) > 1:
        raise AmbiguousKeyError(entity_type, candidates)
    if not candidates:
        raise KeyNotFoundError(entity_type)
    return candidates[0]


@lru_cache(maxsize=None)
def _resolve_concurrency_field(entity_type: type) -> str | None:
    fields = describe_fields(entity_type)
    candidates = [spec.name for spec in fields.values() if spec.is_concurrency_token]
    if not candidates:
        candidates = [
            spec.name
            for spec in fields.values()
            if spec.name in ROW_VERSION_FIELD_NAMES and _is_bytes(spec.annotation)
        ]

    if len(candidates) > 1:
        raise AmbiguousConcurrencyTokenError(entity_type, candidates)
    return candidates[0] if candidates else None


def find_concurrency_field(entity_type: type, required: bool = False) -> str | None:
    """
    Return the name of the row-version field of ``entity_type``.

    Args:
        entity_type: Entity to inspect.
        required: Raise instead of returning None when no field is found.

    Returns:
        Field name, or None if the entity has no optimistic concurrency.

    Raises:
        AmbiguousConcurrencyTokenError: More than one candidate.
        ConcurrencyTokenNotFoundError: None found and ``required`` is set.
    """
    name = _resolve_concurrency_field(entity_type)
    if name is None and required:
        raise ConcurrencyTokenNotFoundError(entity_type)
    return name


def build_key_predicate(entity_type: type, key: Any) -> ColumnElement[bool]:
    """Equality expression on the key column of a mapped entity."""
    return getattr(entity_type, find_key_field(entity_type)) == key
