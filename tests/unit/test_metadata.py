"""
Entity Metadata Resolver Unit Tests

Verifies key and row-version discovery on mapped entities, pydantic
models and annotated dataclasses. No database required.
"""

from dataclasses import dataclass
from typing import Annotated

import pytest
from pydantic import BaseModel
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from restcrud.core.exceptions import (
    AmbiguousConcurrencyTokenError,
    AmbiguousKeyError,
    ConcurrencyTokenNotFoundError,
    KeyNotFoundError,
)
from restcrud.models import Thing
from restcrud.services.fields import ConcurrencyToken, Key, describe_fields
from restcrud.services.metadata import (
    build_key_predicate,
    find_concurrency_field,
    find_key_field,
)

# ---------------------------------------------------------------------------
# Sample types
# ---------------------------------------------------------------------------


@dataclass
class Gadget:
    id: int
    code: Annotated[str, Key()]


@dataclass
class Widget:
    widget_id: int
    name: str = ""


@dataclass
class Gizmo:
    Id: int


@dataclass
class Doohickey:
    id: int
    Doohickey_Id: int


@dataclass
class Sprocket:
    first: Annotated[int, Key()]
    second: Annotated[int, Key()]


@dataclass
class Nameless:
    name: str


@dataclass
class Stamped:
    id: int
    row_version: bytes | None = None


@dataclass
class TextStamped:
    id: int
    timestamp: str = ""


@dataclass
class CasedStamp:
    id: int
    RowVersion: bytes = b""


@dataclass
class ShoutedStamp:
    id: int
    ROWVERSION: bytes = b""


@dataclass
class DoubleStamped:
    id: int
    row_version: bytes = b""
    timestamp: bytes = b""


@dataclass
class Marked:
    id: int
    etag: Annotated[bytes, ConcurrencyToken()] = b""
    row_version: bytes = b""


class KeyedModel(BaseModel):
    id: int = 0
    slug: Annotated[str, Key()] = ""


class _LocalBase(DeclarativeBase):
    pass


class Part(_LocalBase):
    __tablename__ = "parts"

    part_no: Mapped[str] = mapped_column(primary_key=True)
    id: Mapped[int] = mapped_column()


# ---------------------------------------------------------------------------
# Key resolution
# ---------------------------------------------------------------------------


class TestKeyResolution:
    """Tests for find_key_field."""

    def test_primary_key_column(self) -> None:
        assert find_key_field(Thing) == "id"

    def test_primary_key_wins_over_convention(self) -> None:
        assert find_key_field(Part) == "part_no"

    def test_marker_wins_over_convention(self) -> None:
        assert find_key_field(Gadget) == "code"

    def test_pydantic_marker(self) -> None:
        assert find_key_field(KeyedModel) == "slug"

    def test_type_name_convention(self) -> None:
        assert find_key_field(Widget) == "widget_id"

    def test_convention_ignores_case(self) -> None:
        assert find_key_field(Gizmo) == "Id"

    def test_ambiguous_convention(self) -> None:
        with pytest.raises(AmbiguousKeyError) as exc_info:
            find_key_field(Doohickey)
        assert exc_info.value.candidates == ["id", "Doohickey_Id"]

    def test_ambiguous_markers(self) -> None:
        with pytest.raises(AmbiguousKeyError):
            find_key_field(Sprocket)

    def test_no_key(self) -> None:
        with pytest.raises(KeyNotFoundError) as exc_info:
            find_key_field(Nameless)
        assert exc_info.value.entity_type is Nameless

    def test_key_predicate_targets_key_column(self) -> None:
        predicate = build_key_predicate(Thing, 7)
        assert predicate.left.key == "id"
        assert predicate.right.value == 7


# ---------------------------------------------------------------------------
# Concurrency field resolution
# ---------------------------------------------------------------------------


class TestConcurrencyResolution:
    """Tests for find_concurrency_field."""

    def test_version_column(self) -> None:
        assert find_concurrency_field(Thing) == "row_version"
        assert describe_fields(Thing)["row_version"].is_concurrency_token

    def test_bytes_convention(self) -> None:
        assert find_concurrency_field(Stamped) == "row_version"

    def test_convention_requires_bytes(self) -> None:
        assert find_concurrency_field(TextStamped) is None

    def test_pascal_case_convention(self) -> None:
        assert find_concurrency_field(CasedStamp) == "RowVersion"

    def test_convention_is_case_sensitive(self) -> None:
        assert find_concurrency_field(ShoutedStamp) is None

    def test_marker_wins_over_convention(self) -> None:
        assert find_concurrency_field(Marked) == "etag"

    def test_ambiguous(self) -> None:
        with pytest.raises(AmbiguousConcurrencyTokenError):
            find_concurrency_field(DoubleStamped)

    def test_absent_returns_none(self) -> None:
        assert find_concurrency_field(Widget) is None

    def test_absent_required_raises(self) -> None:
        with pytest.raises(ConcurrencyTokenNotFoundError):
            find_concurrency_field(Widget, required=True)
