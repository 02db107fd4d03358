"""Tests for layout schema, override and client rendering."""
import json
from pathlib import Path

import pytest

from typegen.core.errors import MetadataParseError
from typegen.generators.generator import build_layout_artifacts, layout_paths
from typegen.generators.render_layout import render_client_index, schema_kind
from typegen.generators.resolver import resolve_layout
from typegen.metadata.parser import parse_layout_metadata
from typegen.schemas.config import LayoutBlock

FIXTURES = Path(__file__).parent / "fixtures"


def build(block_data=None, layout_data=None):
    layout_data = {"layoutName": "API_Customers", "schemaName": "Customers", **(layout_data or {})}
    block = LayoutBlock.model_validate({"layouts": [layout_data], **(block_data or {})})
    layout = block.layouts[0]
    payload = json.loads((FIXTURES / "customers_layout.json").read_text())
    model = parse_layout_metadata(payload, layout.layout_name, layout.value_lists or "ignore")
    resolved = resolve_layout(layout, model.entity_types[layout.layout_name])
    artifacts = build_layout_artifacts(block, layout, model, resolved)
    files = {f.path: f.content for f in artifacts.files + artifacts.override_files}
    return artifacts, files


@pytest.mark.parametrize(
    "validator,expected",
    [("zod", "zod"), ("zod/v4", "zod"), ("zod/v3", "zod/v3"), (False, "ts")],
)
def test_schema_kind(validator, expected):
    assert schema_kind(validator) == expected


class TestZodSchema:
    def test_files(self):
        artifacts, files = build()

        assert sorted(files) == ["Customers.ts", "client/Customers.ts", "generated/Customers.ts"]
        assert artifacts.export_name == "CustomersLayout"
        assert artifacts.module_name == "Customers"

    def test_schema_fields(self):
        _, files = build()
        schema = files["generated/Customers.ts"]

        assert 'import { z } from "zod";' in schema
        assert "export const ZCustomers = z.object({" in schema
        assert '  "id": z.string(),' in schema
        assert '  "balance": z.union([z.string(), z.number()]),' in schema
        assert "export type TCustomers = z.infer<typeof ZCustomers>;" in schema
        assert 'export const layoutName = "API_Customers";' in schema

    def test_strict_numbers(self):
        _, files = build(layout_data={"strictNumbers": True})
        assert '"balance": z.coerce.number().nullable().catch(null),' in files["generated/Customers.ts"]

    def test_value_lists_strict(self):
        _, files = build(layout_data={"valueLists": "strict"})
        schema = files["generated/Customers.ts"]

        assert '"status": z.enum(["Active", "Inactive"]),' in schema
        assert 'export const ZVLStatuses = z.enum(["Active", "Inactive"]);' in schema
        # unpublished value list falls back to a plain string
        assert '"region": z.string(),' in schema

    def test_value_lists_allow_empty(self):
        _, files = build(layout_data={"valueLists": "allowEmpty"})
        assert '"status": z.enum(["Active", "Inactive", ""]).catch(""),' in files["generated/Customers.ts"]

    def test_value_lists_ignored(self):
        _, files = build()
        assert "z.enum" not in files["generated/Customers.ts"]

    def test_portals(self):
        _, files = build()
        schema = files["generated/Customers.ts"]

        assert 'import type { InferZodPortals } from "@proofkit/fmdapi";' in schema
        assert "export const ZOrders_Portal = z.object({" in schema
        assert '"Orders::OrderId": z.union([z.string(), z.number()]),' in schema
        assert '"Orders Portal": ZOrders_Portal,' in schema
        assert "export type TCustomersPortals = InferZodPortals<typeof ZCustomersPortals>;" in schema
        assert schema.index("ZOrders_Portal = ") < schema.index("ZCustomers = ")

    def test_override_file_reexports_generated_names(self):
        _, files = build()
        override = files["Customers.ts"]

        assert "ZCustomers as ZCustomers_generated," in override
        assert 'from "./generated/Customers";' in override
        assert "export const ZCustomers = ZCustomers_generated;" in override
        assert "export type TCustomers = z.infer<typeof ZCustomers>;" in override


class TestTypeScriptSchema:
    def test_plain_types(self):
        _, files = build(block_data={"validator": False}, layout_data={"valueLists": "strict"})
        schema = files["generated/Customers.ts"]

        assert "z." not in schema
        assert "export type TCustomers = {" in schema
        assert '  "balance": string | number;' in schema
        assert '  "status": "Active" | "Inactive";' in schema
        assert 'export type TVLStatuses = "Active" | "Inactive";' in schema

    def test_override_uses_type_aliases(self):
        _, files = build(block_data={"validator": False})
        override = files["Customers.ts"]

        assert "import type {" in override
        assert "export type TCustomers = TCustomers_generated;" in override


class TestClient:
    def test_fetch_adapter_with_default_env_names(self):
        _, files = build()
        client = files["client/Customers.ts"]

        assert 'import { DataApi, FetchAdapter } from "@proofkit/fmdapi";' in client
        assert 'import { ZCustomers, ZCustomersPortals } from "../Customers";' in client
        assert 'if (!process.env.FM_SERVER) throw new Error("Missing env var: FM_SERVER");' in client
        assert "username: process.env.FM_USERNAME," in client
        assert 'layout: "API_Customers",' in client
        assert "schema: { fieldData: ZCustomers, portalData: ZCustomersPortals }," in client

    def test_otto_adapter_when_api_key_is_named(self):
        _, files = build(block_data={"envNames": {"server": "CRM_URL", "auth": {"apiKey": "CRM_KEY"}}})
        client = files["client/Customers.ts"]

        assert "OttoAdapter" in client
        assert "apiKey: process.env.CRM_KEY as OttoAPIKey" in client
        assert "server: process.env.CRM_URL," in client
        assert "FM_USERNAME" not in client

    def test_webviewer_adapter(self):
        _, files = build(block_data={"webviewerScriptName": "ExecuteDataApi"})
        client = files["client/Customers.ts"]

        assert 'new WebViewerAdapter({ scriptName: "ExecuteDataApi" }),' in client
        assert "process.env" not in client

    def test_typescript_client_uses_generics(self):
        _, files = build(block_data={"validator": False})
        assert "DataApi<TCustomers, TCustomersPortals>({" in files["client/Customers.ts"]

    def test_generate_client_disabled(self):
        artifacts, files = build(layout_data={"generateClient": False})

        assert "client/Customers.ts" not in files
        assert artifacts.export_name == ""

    def test_client_index(self):
        index = render_client_index([("Customers", "CustomersLayout"), ("Invoices", "InvoicesLayout")])
        assert 'export { client as CustomersLayout } from "./Customers";' in index
        assert index.index("CustomersLayout") < index.index("InvoicesLayout")


def test_layout_paths_follow_sanitized_schema_name():
    block = LayoutBlock.model_validate({"layouts": [{"layoutName": "L", "schemaName": "My Schema"}]})
    assert layout_paths(block, block.layouts[0]) == [
        "generated/My_Schema.ts", "My_Schema.ts", "client/My_Schema.ts",
    ]


def test_layout_missing_from_model():
    block = LayoutBlock.model_validate({"layouts": [{"layoutName": "API_Customers", "schemaName": "Customers"}]})
    payload = json.loads((FIXTURES / "customers_layout.json").read_text())
    model = parse_layout_metadata(payload, "Other")
    resolved = resolve_layout(block.layouts[0], model.entity_types["Other"])
    with pytest.raises(MetadataParseError):
        build_layout_artifacts(block, block.layouts[0], model, resolved)
