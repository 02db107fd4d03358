"""Tests for raw type to category mapping."""
import pytest

from typegen.generators.render_table import field_builder
from typegen.generators.type_mapper import FieldCategory, base_category, describe_type_map, map_type


@pytest.mark.parametrize(
    "raw_type,expected",
    [
        ("Edm.String", "text"),
        ("Edm.Decimal", "number"),
        ("Edm.Int32", "number"),
        ("Edm.Int64", "number"),
        ("Edm.Double", "number"),
        ("Edm.Boolean", "boolean"),
        ("Edm.Date", "date"),
        ("Edm.DateTimeOffset", "timestamp"),
        ("Edm.Binary", "container"),
        ("Edm.Stream", "container"),
        ("Collection(Edm.String)", "list"),
        ("text", "text"),
        ("number", "number"),
        ("date", "date"),
        ("time", "time"),
        ("timestamp", "timestamp"),
        ("container", "container"),
    ],
)
def test_known_types(raw_type, expected):
    assert map_type(raw_type) == expected


def test_unknown_type_passes_through():
    assert map_type("Edm.GeographyPoint") == "Edm.GeographyPoint"
    assert map_type("") == ""


def test_override_wins():
    assert map_type("Edm.String", "number") == "number"
    assert map_type("Edm.Decimal", "fmBooleanNumber") == "fmBooleanNumber"


def test_empty_override_is_ignored():
    assert map_type("Edm.Int32", "") == "number"


def test_base_category():
    assert base_category("fmBooleanNumber") == FieldCategory.BOOLEAN.value
    assert base_category("timestamp") == "timestamp"
    assert base_category("Edm.GeographyPoint") is None


def test_passthrough_categories_render_as_text():
    assert field_builder("Edm.GeographyPoint") == "textField()"
    assert field_builder("fmBooleanNumber") == "numberField().outputValidator(z.coerce.boolean())"


def test_describe_type_map_covers_collections():
    rows = dict(describe_type_map())
    assert rows["Edm.String"] == "text"
    assert rows["Collection(...)"] == "list"
