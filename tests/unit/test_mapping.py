"""
Mapping Engine Unit Tests

Verifies name-based field copying, type checks, partial (explicitly set)
mapping and projections. No database required.
"""

from dataclasses import dataclass
from typing import Any

import pytest

from restcrud.core.exceptions import MappingError, TypeMismatchError
from restcrud.models import Thing
from restcrud.schemas.things import ThingWebModel
from restcrud.services.mapping import (
    Projection,
    build_projection,
    field_map,
    map_fields,
)

# ---------------------------------------------------------------------------
# Sample types
# ---------------------------------------------------------------------------


@dataclass
class Draft:
    name: str = ""
    description: str | None = None
    draft_only: int = 0


@dataclass
class Page:
    name: str = ""
    description: str | None = None
    page_only: str = "untouched"


@dataclass
class Unrelated:
    colour: str = ""


@dataclass
class Loose:
    name: Any = None
    description: Any = None


@dataclass
class Measurement:
    value: int = 0


@dataclass
class Reading:
    value: float = 0.0


@dataclass
class NeedsLabel:
    name: str
    label: str


# ---------------------------------------------------------------------------
# map_fields
# ---------------------------------------------------------------------------


class TestMapFields:
    """Tests for map_fields."""

    def test_copies_shared_fields_only(self) -> None:
        page = Page()
        written = map_fields(Draft(name="TEXT1", description="first"), page)

        assert written == {"name", "description"}
        assert page.name == "TEXT1"
        assert page.description == "first"
        assert page.page_only == "untouched"

    def test_no_shared_fields(self) -> None:
        page = Page(name="kept")
        assert map_fields(Unrelated(colour="red"), page) == set()
        assert page.name == "kept"

    def test_none_is_copied(self) -> None:
        page = Page(description="old")
        map_fields(Draft(name="n", description=None), page)
        assert page.description is None

    def test_type_mismatch_writes_nothing(self) -> None:
        page = Page(name="kept", description="kept")
        with pytest.raises(TypeMismatchError) as exc_info:
            map_fields(Loose(name=5, description="new"), page)

        assert exc_info.value.field == "name"
        assert page.name == "kept"
        assert page.description == "kept"

    def test_int_fits_float(self) -> None:
        reading = Reading()
        map_fields(Measurement(value=3), reading)
        assert reading.value == 3

    def test_onto_entity(self) -> None:
        thing = Thing()
        written = map_fields(ThingWebModel(id=4, name="TEXT1"), thing)

        assert written == {"id", "name", "description", "row_version"}
        assert thing.id == 4
        assert thing.name == "TEXT1"

    def test_only_set_fields(self) -> None:
        thing = Thing(description="kept")
        written = map_fields(
            ThingWebModel(id=4, name="TEXT2"), thing, only_set=True
        )

        assert written == {"id", "name"}
        assert thing.description == "kept"

    def test_only_set_keeps_explicit_none(self) -> None:
        thing = Thing(description="old")
        written = map_fields(
            ThingWebModel(id=4, description=None), thing, only_set=True
        )

        assert written == {"id", "description"}
        assert thing.description is None

    def test_field_map_is_cached(self) -> None:
        assert field_map(Draft, Page) is field_map(Draft, Page)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


class TestProjection:
    """Tests for Projection and build_projection."""

    def test_entity_to_web_model(self) -> None:
        thing = Thing(id=1, name="TEXT1", description=None, row_version=b"\x01" * 16)
        dto = build_projection(Thing, ThingWebModel)(thing)

        assert isinstance(dto, ThingWebModel)
        assert dto.id == 1
        assert dto.name == "TEXT1"
        assert dto.row_version == b"\x01" * 16

    def test_build_projection_is_cached(self) -> None:
        assert build_projection(Thing, ThingWebModel) is build_projection(
            Thing, ThingWebModel
        )

    def test_plain_destination(self) -> None:
        page = Projection(Draft, Page)(Draft(name="a", description="b"))
        assert (page.name, page.description, page.page_only) == ("a", "b", "untouched")

    def test_required_field_missing_on_source(self) -> None:
        with pytest.raises(MappingError, match="label"):
            Projection(Draft, NeedsLabel)

    def test_columns_need_mapped_source(self) -> None:
        with pytest.raises(MappingError):
            Projection(Draft, Page).columns

    def test_columns_are_labelled(self) -> None:
        columns = build_projection(Thing, ThingWebModel).columns
        assert {column.name for column in columns} == {
            "id",
            "name",
            "description",
            "row_version",
        }
