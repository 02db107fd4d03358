"""Tests for the configuration document schema and file handling."""
import json
import tempfile
from pathlib import Path

import pytest

from typegen.core.document import dump_document, find_config, load_document, parse_document, save_document
from typegen.core.errors import ConfigDocumentError
from typegen.schemas.config import LayoutBlock, TableBlock, TriState

DOCUMENT = {
    "postGenerateCommand": "npx prettier --write schema",
    "config": [
        {
            "type": "fmdapi",
            "configName": "crm",
            "envNames": {"server": "CRM_SERVER", "db": "CRM_DB", "auth": {"apiKey": "CRM_KEY"}},
            "path": "schema/crm",
            "layouts": [{"layoutName": "API_Customers", "schemaName": "Customers", "valueLists": "strict"}],
        },
        {
            "type": "fmodata",
            "path": "schema/odata",
            "includeAllFieldsByDefault": False,
            "tables": [
                {
                    "tableName": "Orders",
                    "reduceMetadata": True,
                    "fields": [
                        {"fieldName": "OrderId"},
                        {"fieldName": "Paid", "typeOverride": "boolean"},
                        {"fieldName": "InternalNotes", "exclude": True},
                    ],
                }
            ],
        },
    ],
}


def test_parse_document_blocks():
    doc = parse_document(DOCUMENT)

    layout_block, table_block = doc.blocks
    assert isinstance(layout_block, LayoutBlock)
    assert isinstance(table_block, TableBlock)
    assert layout_block.env_names.auth.api_key == "CRM_KEY"
    assert table_block.include_all_fields_by_default is TriState.DISABLED
    assert table_block.always_override_field_names is TriState.INHERIT
    orders = table_block.table_config("Orders")
    assert orders.reduce_metadata is TriState.ENABLED
    assert orders.field_config("InternalNotes").exclude is TriState.ENABLED
    assert orders.field_config("OrderId").exclude is TriState.INHERIT


def test_single_block_without_type_is_a_layout_block():
    doc = parse_document({"config": {"layouts": [{"layoutName": "L", "schemaName": "S"}]}})
    assert len(doc.blocks) == 1
    assert isinstance(doc.blocks[0], LayoutBlock)
    assert doc.blocks[0].validator == "zod/v4"


def test_legacy_format_command_alias():
    doc = parse_document({"formatCommand": "make fmt", "config": []})
    assert doc.post_generate_command == "make fmt"


def test_blank_env_names_are_unset():
    doc = parse_document({"config": [{"type": "fmdapi", "envNames": {"server": "  ", "auth": {"apiKey": ""}}}]})
    env = doc.blocks[0].env_names
    assert env.server is None
    assert env.auth is None


def test_round_trip_preserves_inherit():
    """Unset settings stay unset; they never come back as an explicit false."""
    doc = parse_document(DOCUMENT)
    dumped = dump_document(doc)

    table_block = dumped["config"][1]
    assert table_block["includeAllFieldsByDefault"] is False
    assert "alwaysOverrideFieldNames" not in table_block
    fields = table_block["tables"][0]["fields"]
    assert fields[0] == {"fieldName": "OrderId"}
    assert fields[2]["exclude"] is True
    assert parse_document(dumped) == doc


@pytest.mark.parametrize(
    "data,location",
    [
        ({"config": [{"type": "other"}]}, "config"),
        ({"config": [{"type": "fmodata", "tables": [{"fields": []}]}]}, "tables"),
        ({"config": [{"type": "fmodata", "tables": [{"tableName": "T", "fields": [{"fieldName": "F", "typeOverride": "money"}]}]}]}, "typeOverride"),
    ],
)
def test_invalid_documents_report_issues(data, location):
    with pytest.raises(ConfigDocumentError) as exc:
        parse_document(data)
    assert exc.value.issues
    assert any(location in [str(p) for p in issue["path"]] for issue in exc.value.issues)


def test_non_mapping_document():
    with pytest.raises(ConfigDocumentError):
        parse_document(["config"])


def test_save_and_load_yaml_and_json():
    with tempfile.TemporaryDirectory() as temp_dir:
        doc = parse_document(DOCUMENT)
        for name in ("typegen.config.yaml", "typegen.config.json"):
            path = Path(temp_dir) / name
            save_document(path, doc)
            assert load_document(path) == doc

        raw = json.loads((Path(temp_dir) / "typegen.config.json").read_text())
        assert raw["postGenerateCommand"] == "npx prettier --write schema"


def test_load_document_errors():
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "typegen.config.yaml"
        with pytest.raises(ConfigDocumentError, match="Could not read"):
            load_document(path)

        path.write_text("config: [unclosed\n")
        with pytest.raises(ConfigDocumentError, match="Could not parse"):
            load_document(path)

        path.write_bytes(b"config:\n  - type: fmodata\n    path: \xff\xfe\n")
        with pytest.raises(ConfigDocumentError, match="Could not read"):
            load_document(path)


def test_find_config_prefers_existing_file():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        assert find_config(root) == root / "typegen.config.yaml"

        (root / "typegen.config.json").write_text("{}")
        assert find_config(root) == root / "typegen.config.json"
        assert find_config(root, "custom.yaml") == root / "typegen.config.json"

        (root / "custom.yaml").write_text("config: []")
        assert find_config(root, "custom.yaml") == root / "custom.yaml"
