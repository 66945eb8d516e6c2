"""
Field Introspection

Uniform description of the public fields of a type, shared by the mapping
engine and the metadata resolver.

Supported declarations:
    - SQLAlchemy mapped classes: one field per column attribute. Primary-key
      columns carry the key annotation, the mapper's ``version_id_col``
      carries the concurrency annotation.
    - pydantic models: ``model_fields``.
    - dataclasses and plain annotated classes: ``typing.get_type_hints``.
      Key and concurrency annotations are the ``Key`` and
      ``ConcurrencyToken`` markers inside ``typing.Annotated``::

          @dataclass
          class Gadget:
              code: Annotated[str, Key()]
              stamp: Annotated[bytes | None, ConcurrencyToken()] = None

Descriptions are computed once per type and cached.
"""

from __future__ import annotations

import dataclasses
import types
from collections.abc import Mapping
from functools import lru_cache
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel
from sqlalchemy import Column
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapper


class Key:
    """Marks the key field of a non-ORM type."""

    def __repr__(self) -> str:
        return "Key()"


class ConcurrencyToken:
    """Marks the concurrency-token field of a non-ORM type."""

    def __repr__(self) -> str:
        return "ConcurrencyToken()"


@dataclasses.dataclass(frozen=True)
class FieldSpec:
    """
    Public field of a type.

    Attributes:
        name: Attribute name.
        annotation: Declared Python type (``Any`` when unknown).
        optional: Whether ``None`` is an acceptable value.
        required: Whether the type's constructor needs a value for it.
        writable: Whether the field can be assigned on an instance.
        is_key: Carries the key annotation.
        is_concurrency_token: Carries the concurrency annotation.
    """

    name: str
    annotation: Any
    optional: bool
    required: bool = False
    writable: bool = True
    is_key: bool = False
    is_concurrency_token: bool = False


def get_mapper(cls: type) -> Mapper | None:
    """Return the SQLAlchemy mapper of ``cls``, or None for unmapped types."""
    mapper = sa_inspect(cls, raiseerr=False)
    return mapper if isinstance(mapper, Mapper) else None


def strip_annotated(annotation: Any) -> tuple[Any, tuple[Any, ...]]:
    """Split ``Annotated[T, *meta]`` into ``(T, meta)``."""
    if get_origin(annotation) is Annotated:
        base, *metadata = get_args(annotation)
        return base, tuple(metadata)
    return annotation, ()


def is_optional(annotation: Any) -> bool:
    annotation, _ = strip_annotated(annotation)
    if annotation is Any or annotation is None or annotation is type(None):
        return True
    if get_origin(annotation) in (Union, types.UnionType):
        return any(is_optional(arg) for arg in get_args(annotation))
    return False


def _has_marker(metadata: tuple[Any, ...], marker: type) -> bool:
    return any(item is marker or isinstance(item, marker) for item in metadata)


def _mapped_fields(mapper: Mapper) -> list[FieldSpec]:
    version_key = None
    if mapper.version_id_col is not None:
        version_key = mapper.get_property_by_column(mapper.version_id_col).key

    specs = []
    for prop in mapper.column_attrs:
        column = prop.columns[0]
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            python_type = Any
        # Nullability is enforced by the database at flush
        specs.append(
            FieldSpec(
                name=prop.key,
                annotation=python_type,
                optional=True,
                writable=isinstance(column, Column),
                is_key=isinstance(column, Column) and column.primary_key,
                is_concurrency_token=prop.key == version_key,
            )
        )
    return specs


def _pydantic_fields(model: type[BaseModel]) -> list[FieldSpec]:
    specs = []
    for name, info in model.model_fields.items():
        specs.append(
            FieldSpec(
                name=name,
                annotation=info.annotation,
                optional=is_optional(info.annotation),
                required=info.is_required(),
                is_key=_has_marker(tuple(info.metadata), Key),
                is_concurrency_token=_has_marker(tuple(info.metadata), ConcurrencyToken),
            )
        )
    return specs


def _annotated_fields(cls: type) -> list[FieldSpec]:
    required: set[str] = set()
    if dataclasses.is_dataclass(cls):
        required = {
            f.name
            for f in dataclasses.fields(cls)
            if f.init
            and f.default is dataclasses.MISSING
            and f.default_factory is dataclasses.MISSING
        }

    specs = []
    for name, hint in get_type_hints(cls, include_extras=True).items():
        if name.startswith("_") or get_origin(hint) is ClassVar:
            continue
        annotation, metadata = strip_annotated(hint)
        specs.append(
            FieldSpec(
                name=name,
                annotation=annotation,
                optional=is_optional(annotation),
                required=name in required,
                is_key=_has_marker(metadata, Key),
                is_concurrency_token=_has_marker(metadata, ConcurrencyToken),
            )
        )
    return specs


@lru_cache(maxsize=None)
def describe_fields(cls: type) -> Mapping[str, FieldSpec]:
    """
    Describe the public fields of ``cls``, in declaration order.

    Returns:
        Read-only mapping of field name to FieldSpec.
    """
    mapper = get_mapper(cls)
    if mapper is not None:
        specs = _mapped_fields(mapper)
    elif isinstance(cls, type) and issubclass(cls, BaseModel):
        specs = _pydantic_fields(cls)
    else:
        specs = _annotated_fields(cls)
    return types.MappingProxyType({spec.name: spec for spec in specs})
