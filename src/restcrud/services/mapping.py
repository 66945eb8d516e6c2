"""
Mapping Engine

Copies field values between objects of two types by matching field names.

Rules:
    - A field is mapped when the source declares it and the destination
      declares a writable field of the same (case-sensitive) name.
    - Values are assigned, never copied or coerced. A value the destination
      type cannot hold raises TypeMismatchError before anything is written.
    - Field maps are computed once per (source type, destination type).
"""

from __future__ import annotations

import dataclasses
import logging
import types
from collections.abc import Mapping
from functools import lru_cache
from typing import Annotated, Any, Generic, Literal, TypeVar, Union, get_args, get_origin

from pydantic import BaseModel
from sqlalchemy.engine import Row
from sqlalchemy.sql.elements import Label

from restcrud.core.exceptions import MappingError, TypeMismatchError
from restcrud.services.fields import FieldSpec, describe_fields, get_mapper

logger = logging.getLogger(__name__)

SourceT = TypeVar("SourceT")
DestT = TypeVar("DestT")


def _accepts(annotation: Any, value: Any) -> bool:
    """Structural isinstance check against a (possibly generic) annotation."""
    if annotation is Any or annotation is object:
        return True
    if annotation is None or annotation is type(None):
        return value is None

    origin = get_origin(annotation)
    if origin is Annotated:
        return _accepts(get_args(annotation)[0], value)
    if origin in (Union, types.UnionType):
        return any(_accepts(arg, value) for arg in get_args(annotation))
    if origin is Literal:
        return value in get_args(annotation)
    if origin is not None:
        annotation = origin  # list[int] -> list

    if not isinstance(annotation, type):
        # TypeVar, ForwardRef, NewType...
        return True
    if annotation is float and isinstance(value, int) and not isinstance(value, bool):
        return True
    return isinstance(value, annotation)


def check_assignable(spec: FieldSpec, value: Any) -> None:
    """Raise TypeMismatchError if ``value`` cannot be stored in ``spec``."""
    if value is None:
        if spec.optional:
            return
        raise TypeMismatchError(spec.name, spec.annotation, value)
    if not _accepts(spec.annotation, value):
        raise TypeMismatchError(spec.name, spec.annotation, value)


@lru_cache(maxsize=None)
def field_map(source_type: type, dest_type: type) -> tuple[str, ...]:
    """Names of the fields mapped from ``source_type`` onto ``dest_type``."""
    source = describe_fields(source_type)
    dest = describe_fields(dest_type)
    names = tuple(name for name in source if name in dest and dest[name].writable)
    logger.debug(
        "Field map %s -> %s: %s",
        source_type.__qualname__,
        dest_type.__qualname__,
        ", ".join(names) or "<none>",
    )
    return names


def map_fields(source: Any, destination: Any, *, only_set: bool = False) -> set[str]:
    """
    Copy every shared field from ``source`` onto ``destination``.

    Args:
        source: Object to read from.
        destination: Object to write to. Fields it declares that the source
            does not are left untouched.
        only_set: For pydantic sources, read only the fields explicitly set
            on the instance (``model_fields_set``).

    Returns:
        Names of the destination fields written. Empty when nothing matches.

    Raises:
        TypeMismatchError: A value does not fit the destination field type.
            Nothing is written in that case.
    """
    names = field_map(type(source), type(destination))
    if only_set and isinstance(source, BaseModel):
        names = tuple(name for name in names if name in source.model_fields_set)

    dest_fields = describe_fields(type(destination))
    values = {name: getattr(source, name) for name in names}
    for name, value in values.items():
        check_assignable(dest_fields[name], value)

    for name, value in values.items():
        setattr(destination, name, value)
    return set(values)


class Projection(Generic[SourceT, DestT]):
    """
    Reusable ``source -> dest`` conversion.

    Builds a new destination instance holding every destination field that
    has a same-named source field. When the source is a mapped entity the
    projection can also run at the storage layer::

        stmt = select(*projection.columns)
        dtos = [projection.from_row(row) for row in await session.execute(stmt)]
    """

    def __init__(self, source_type: type[SourceT], dest_type: type[DestT]) -> None:
        self.source_type = source_type
        self.dest_type = dest_type
        self.fields = field_map(source_type, dest_type)
        self._dest_fields = describe_fields(dest_type)

        missing = [
            name
            for name, spec in self._dest_fields.items()
            if spec.required and name not in self.fields
        ]
        if missing:
            raise MappingError(
                f"{dest_type.__qualname__} requires fields missing on "
                f"{source_type.__qualname__}: {', '.join(missing)}"
            )

    def __call__(self, source: SourceT) -> DestT:
        return self._build({name: getattr(source, name) for name in self.fields})

    @property
    def columns(self) -> list[Label[Any]]:
        """Labelled column expressions selecting the projected fields."""
        if get_mapper(self.source_type) is None:
            raise MappingError(
                f"{self.source_type.__qualname__} is not a mapped entity"
            )
        return [getattr(self.source_type, name).label(name) for name in self.fields]

    def from_row(self, row: Row[Any]) -> DestT:
        """Build the destination from a row selected with ``columns``."""
        mapping = row._mapping
        return self._build({name: mapping[name] for name in self.fields})

    def _build(self, values: Mapping[str, Any]) -> DestT:
        for name, value in values.items():
            check_assignable(self._dest_fields[name], value)

        dest_type: Any = self.dest_type
        if issubclass(dest_type, BaseModel) or dataclasses.is_dataclass(dest_type):
            return dest_type(**values)

        instance = dest_type()
        for name, value in values.items():
            setattr(instance, name, value)
        return instance

    def __repr__(self) -> str:
        return (
            f"<Projection({self.source_type.__qualname__} -> "
            f"{self.dest_type.__qualname__}, fields={list(self.fields)})>"
        )


@lru_cache(maxsize=None)
def build_projection(
    source_type: type[SourceT], dest_type: type[DestT]
) -> Projection[SourceT, DestT]:
    """Build (once) the projection from ``source_type`` to ``dest_type``."""
    return Projection(source_type, dest_type)
